# Import all the models, so that Base has them before being
# imported by create_all
from sharegate.db.base_class import Base  # noqa
from sharegate.models.user import User  # noqa
from sharegate.models.file import File  # noqa
from sharegate.models.share_link import ShareLink  # noqa
from sharegate.models.download import DownloadAttempt, DownloadLog  # noqa
