from dotenv import load_dotenv

# Load environment variables from .env before config.get_settings() or
# security.get_api_key() read os.environ.
load_dotenv()
