"""Local development entry point.

Usage:
    python run.py
    PORT=8000 python run.py
"""

import os

from dotenv import load_dotenv

load_dotenv()  # Load .env before anything else

from leadbook import create_app

app = create_app(os.environ.get("FLASK_ENV", "development"))

if __name__ == "__main__":
    app.run(debug=app.debug, host="0.0.0.0", port=int(os.environ.get("PORT", 5001)))
