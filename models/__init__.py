"""
Creates the process-wide DBStorage instance.
Import it as `from models import storage`.
"""
from models.db_storage import DBStorage

storage = DBStorage()
storage.reload()
