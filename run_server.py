#!/usr/bin/env python3
"""
Message board server
Serves the thread and reply API with uvicorn
"""
import logging
import sys
import uvicorn
from config import DEFAULT_HOST, DEFAULT_PORT, DB_PATH, TEST_MODE


def main():
    logging.basicConfig(
        level=logging.DEBUG if TEST_MODE else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    print("Starting message board server...")
    print(f"Database: {DB_PATH}")
    print("Available at:")
    print(f"  - http://{DEFAULT_HOST}:{DEFAULT_PORT}/api/threads/{{board}}")
    print(f"  - http://{DEFAULT_HOST}:{DEFAULT_PORT}/api/replies/{{board}}")
    print()
    print("Press Ctrl+C to stop the server")

    try:
        from app import app

        uvicorn.run(
            app,
            host=DEFAULT_HOST,
            port=DEFAULT_PORT,
            reload=False,
            access_log=True
        )
    except KeyboardInterrupt:
        print("\nServer stopped by user")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()
