#!/usr/bin/env python3
"""
Admin Setup Script for the DataMart Backend

Creates the admin account, or promotes an existing account with the same
email to admin.

Usage:
    ADMIN_EMAIL=ops@datamartgh.shop ADMIN_PASSWORD=... python setup_admin.py
"""

import os
import sys
from datetime import datetime
from werkzeug.security import generate_password_hash
from pymongo import MongoClient

from config.environment import AppConfig


def setup_admin_user(db, email, password, name='DataMart Admin', phone_number=None):
    """
    Create the admin user, or promote an existing user with that email.

    Returns:
        tuple: (user_id, created)
    """
    email = email.strip().lower()
    existing = db.users.find_one({'email': email})

    if existing:
        if existing.get('role') != 'admin':
            db.users.update_one(
                {'_id': existing['_id']},
                {'$set': {'role': 'admin', 'updatedAt': datetime.utcnow()}}
            )
        return existing['_id'], False

    result = db.users.insert_one({
        'name': name,
        'email': email,
        'phoneNumber': phone_number,
        'password': generate_password_hash(password),
        'role': 'admin',
        'walletBalance': 0.0,
        'isDisabled': False,
        'createdAt': datetime.utcnow(),
        'updatedAt': datetime.utcnow(),
    })
    return result.inserted_id, True


if __name__ == '__main__':
    admin_email = os.environ.get('ADMIN_EMAIL')
    admin_password = os.environ.get('ADMIN_PASSWORD')

    if not admin_email or not admin_password:
        print("ADMIN_EMAIL and ADMIN_PASSWORD must be set")
        sys.exit(1)

    config = AppConfig.from_env()
    client = MongoClient(config.MONGO_URI)

    try:
        user_id, created = setup_admin_user(
            client.get_default_database(),
            admin_email,
            admin_password,
            phone_number=os.environ.get('ADMIN_PHONE')
        )
        if created:
            print(f"Admin user created: {user_id} ({admin_email})")
        else:
            print(f"Existing user {user_id} ({admin_email}) has the admin role")
    finally:
        client.close()
