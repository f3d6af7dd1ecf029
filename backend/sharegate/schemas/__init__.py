from .share_link import ShareLink, ShareLinkCreate, ShareLinkPolicy, ShareLinkPublic
from .file import File, FileCreate, FileList
from .download import DownloadRequest, DownloadGrant, DownloadLog
