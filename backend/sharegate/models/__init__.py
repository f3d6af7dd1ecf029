from .user import User
from .file import File
from .share_link import ShareLink
from .download import DownloadAttempt, DownloadLog
