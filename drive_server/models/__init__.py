from drive_server.db.base import Base
from drive_server.models.user import User
from drive_server.models.folder import Folder
from drive_server.models.file import File
