"""WSGI configuration for production deployment."""
import os
from dotenv import load_dotenv

load_dotenv()

from attendance_integrity import create_app  # noqa: E402

# Create Flask application instance
app = create_app(os.getenv('FLASK_ENV', 'production'))

if __name__ == "__main__":
    app.run()
