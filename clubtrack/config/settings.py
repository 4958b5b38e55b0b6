import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    API_URL = os.getenv('CLUBTRACK_API_URL', 'http://localhost:8000/api/v1')
    API_TOKEN = os.getenv('CLUBTRACK_API_TOKEN', '')
    API_TIMEOUT = int(os.getenv('CLUBTRACK_API_TIMEOUT', '30'))
    FETCH_RETRIES = int(os.getenv('CLUBTRACK_FETCH_RETRIES', '2'))
    PAGE_LIMIT = int(os.getenv('CLUBTRACK_PAGE_LIMIT', '50'))

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    JSON_LOGS = os.getenv('JSON_LOGS', 'false').lower() == 'true'
    LOG_DIR = os.getenv('CLUBTRACK_LOG_DIR', os.path.join(os.getcwd(), 'logs'))

    @classmethod
    def get_api_url(cls):
        return cls.API_URL.rstrip('/')
