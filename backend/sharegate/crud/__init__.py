from .crud_user import user
from .crud_file import file
from .crud_share_link import share_link
from .crud_download import download_attempt, download_log
