#!/usr/bin/env python3
"""
Start the DataMart Backend development server
"""

import os
import sys

if __name__ == '__main__':
    # Set environment variables for development
    os.environ.setdefault('MONGO_URI', 'mongodb://localhost:27017/datamart')
    os.environ.setdefault('FLASK_ENV', 'development')

    from app import create_app

    port = int(os.environ.get('PORT', '5000'))

    print("Starting DataMart Backend...")
    print(f"MongoDB URI: {os.environ.get('MONGO_URI')}")
    print(f"Server will be available at: http://localhost:{port}")
    print("Press Ctrl+C to stop the server")

    try:
        create_app().run(debug=True, host='0.0.0.0', port=port)
    except KeyboardInterrupt:
        print("\nServer stopped by user")
        sys.exit(0)
