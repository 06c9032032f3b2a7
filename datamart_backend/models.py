from datetime import datetime
from typing import Dict, List, Optional, Any
from bson import ObjectId
import logging

logger = logging.getLogger(__name__)


# Order lifecycle. Admins may set any of these; 'failed' triggers the one-time refund.
ORDER_STATUSES = ('pending', 'waiting', 'processing', 'shipped', 'delivered', 'completed', 'failed')

TRANSACTION_TYPES = ('deposit', 'withdrawal', 'refund', 'payment')
TRANSACTION_STATUSES = ('pending', 'processing', 'completed', 'failed', 'refunded')

USER_ROLES = ('user', 'admin')

NETWORKS = ('YELLO', 'TELECEL', 'AT_PREMIUM', 'airteltigo', 'at')

INVENTORY_CHANNELS = ('web', 'api')


class DatabaseSchema:
    """
    Centralized database schema definitions for all collections.
    Provides schema documentation and index definitions.
    """

    # ==================== USERS COLLECTION ====================

    @staticmethod
    def get_user_schema() -> Dict[str, Any]:
        """
        Schema for users collection.
        Stores identity, credentials, role and the authoritative wallet balance.
        """
        return {
            '_id': ObjectId,
            'name': str,
            'email': str,  # Required, unique, lowercase
            'phoneNumber': str,  # Ghana number, 0XXXXXXXXX or +233XXXXXXXXX
            'password': str,  # Hashed with werkzeug.security
            'role': str,  # 'user' or 'admin', default: 'user'
            'walletBalance': float,  # GHS, never negative
            'referralCode': Optional[str],
            'isDisabled': bool,  # default: False
            'disableReason': Optional[str],
            'disabledAt': Optional[datetime],
            'disabledBy': Optional[ObjectId],
            'enabledAt': Optional[datetime],
            'enabledBy': Optional[ObjectId],
            'createdAt': datetime,
            'updatedAt': Optional[datetime],
            'lastLogin': Optional[datetime],
        }

    @staticmethod
    def get_user_indexes() -> List[Dict[str, Any]]:
        """Define indexes for users collection."""
        return [
            {'keys': [('email', 1)], 'unique': True, 'name': 'email_unique'},
            {'keys': [('phoneNumber', 1)], 'name': 'phone_number'},
            {'keys': [('role', 1)], 'name': 'role_index'},
            {'keys': [('createdAt', -1)], 'name': 'created_at_desc'},
        ]

    # ==================== TRANSACTIONS COLLECTION ====================

    @staticmethod
    def get_transaction_schema() -> Dict[str, Any]:
        """
        Schema for transactions collection.
        Append-only record of every balance-affecting event. amount, type and
        userId never change after insert; status and metadata may.
        """
        return {
            '_id': ObjectId,
            'userId': ObjectId,  # Owner, reference to users._id
            'type': str,  # 'deposit', 'withdrawal', 'refund', 'payment'
            'amount': float,  # Always positive
            'status': str,  # 'pending', 'processing', 'completed', 'failed', 'refunded'
            'reference': str,  # Unique
            'gateway': str,  # 'admin-deposit', 'admin-deduction', 'paystack', 'wallet-refund', ...
            'metadata': Dict[str, Any],  # reason, adminId, previousBalance, orderId, ...
            'createdAt': datetime,
            'updatedAt': Optional[datetime],
        }

    @staticmethod
    def get_transaction_indexes() -> List[Dict[str, Any]]:
        """Define indexes for transactions collection."""
        return [
            {'keys': [('reference', 1)], 'unique': True, 'name': 'reference_unique'},
            {'keys': [('userId', 1), ('createdAt', -1)], 'name': 'user_created_desc'},
            {'keys': [('type', 1), ('status', 1), ('createdAt', -1)], 'name': 'type_status_created'},
            {'keys': [('gateway', 1)], 'name': 'gateway_index'},
        ]

    # ==================== DATA PURCHASES COLLECTION ====================

    @staticmethod
    def get_data_purchase_schema() -> Dict[str, Any]:
        """
        Schema for datapurchases collection.
        One customer data-bundle order and its status history.
        """
        return {
            '_id': ObjectId,
            'userId': ObjectId,  # Owner, reference to users._id
            'phoneNumber': str,  # Recipient, may differ from the owner
            'network': str,  # One of NETWORKS
            'capacity': float,  # GB
            'price': float,  # GHS
            'status': str,  # One of ORDER_STATUSES
            'geonetReference': Optional[str],  # Vendor reference, primary lookup key
            'statusHistory': List[Dict[str, Any]],
            # statusHistory structure:
            # [{
            #     'status': str,
            #     'changedAt': datetime,
            #     'changedBy': ObjectId,
            #     'previousStatus': str,
            #     'bulkUpdate': Optional[bool]
            # }]
            'processedBy': Optional[ObjectId],  # Last admin actor
            'refundedAt': Optional[datetime],  # Set once when the failure refund is paid
            'refundTransactionId': Optional[ObjectId],
            'createdAt': datetime,
            'updatedAt': Optional[datetime],
        }

    @staticmethod
    def get_data_purchase_indexes() -> List[Dict[str, Any]]:
        """Define indexes for datapurchases collection."""
        return [
            {'keys': [('geonetReference', 1)], 'sparse': True, 'name': 'geonet_reference'},
            {'keys': [('userId', 1), ('createdAt', -1)], 'name': 'user_created_desc'},
            {'keys': [('status', 1), ('createdAt', -1)], 'name': 'status_created_desc'},
            {'keys': [('network', 1)], 'name': 'network_index'},
        ]

    # ==================== DATA INVENTORIES COLLECTION ====================

    @staticmethod
    def get_data_inventory_schema() -> Dict[str, Any]:
        """
        Schema for datainventories collection.
        Per-network availability flags, tracked separately for the web
        storefront and the reseller API.
        """
        return {
            '_id': ObjectId,
            'network': str,  # Unique
            'webInStock': bool,
            'apiInStock': bool,
            'webSkipGeonettech': bool,  # True = vendor integration bypassed
            'apiSkipGeonettech': bool,
            'webLastUpdatedBy': Optional[ObjectId],
            'webLastUpdatedAt': Optional[datetime],
            'apiLastUpdatedBy': Optional[ObjectId],
            'apiLastUpdatedAt': Optional[datetime],
            'inStock': bool,  # Legacy unified flag
            'skipGeonettech': bool,  # Legacy unified flag
            'updatedAt': Optional[datetime],
        }

    @staticmethod
    def get_data_inventory_indexes() -> List[Dict[str, Any]]:
        """Define indexes for datainventories collection."""
        return [
            {'keys': [('network', 1)], 'unique': True, 'name': 'network_unique'},
        ]


class DatabaseInitializer:
    """
    Database initialization and management utilities.
    Handles collection creation and index setup.
    """

    def __init__(self, mongo_db):
        """
        Initialize with MongoDB database instance.

        Args:
            mongo_db: PyMongo database instance
        """
        self.db = mongo_db
        self.schema = DatabaseSchema()

    def collection_indexes(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            'users': self.schema.get_user_indexes(),
            'transactions': self.schema.get_transaction_indexes(),
            'datapurchases': self.schema.get_data_purchase_indexes(),
            'datainventories': self.schema.get_data_inventory_indexes(),
        }

    def initialize_collections(self):
        """
        Initialize all collections with proper indexes.
        Safe to run multiple times - will skip if collections exist.
        """
        results = {
            'created': [],
            'existing': [],
            'indexes_created': [],
            'errors': []
        }

        existing_collections = self.db.list_collection_names()

        for collection_name, indexes in self.collection_indexes().items():
            try:
                if collection_name in existing_collections:
                    results['existing'].append(collection_name)
                else:
                    self.db.create_collection(collection_name)
                    results['created'].append(collection_name)
                    logger.info(f"Created collection '{collection_name}'")

                collection = self.db[collection_name]
                existing_indexes = collection.index_information()

                for index_def in indexes:
                    index_name = index_def.get('name')
                    if index_name and index_name in existing_indexes:
                        continue

                    try:
                        created_index_name = collection.create_index(
                            index_def['keys'],
                            unique=index_def.get('unique', False),
                            sparse=index_def.get('sparse', False),
                            name=index_name
                        )
                        results['indexes_created'].append(f"{collection_name}.{created_index_name}")
                    except Exception as index_error:
                        if 'already exists' in str(index_error).lower():
                            continue
                        error_msg = f"Failed to create index '{index_name}' on {collection_name}: {str(index_error)}"
                        results['errors'].append(error_msg)
                        logger.error(error_msg)

            except Exception as e:
                error_msg = f"Failed to initialize collection {collection_name}: {str(e)}"
                results['errors'].append(error_msg)
                logger.error(error_msg)

        return results


class ModelValidator:
    """
    Validation utilities for model data.
    """

    @staticmethod
    def validate_email(email: str) -> bool:
        """Validate email format."""
        import re
        pattern = r'^[^\s@]+@[^\s@]+\.[^\s@]+$'
        return isinstance(email, str) and re.match(pattern, email) is not None

    @staticmethod
    def validate_order_status(status: str) -> bool:
        return status in ORDER_STATUSES

    @staticmethod
    def validate_transaction_status(status: str) -> bool:
        return status in TRANSACTION_STATUSES

    @staticmethod
    def validate_user_role(role: str) -> bool:
        return role in USER_ROLES

    @staticmethod
    def validate_channel(channel: str) -> bool:
        return channel in INVENTORY_CHANNELS


def to_object_id(value) -> Optional[ObjectId]:
    """Return an ObjectId for value, or None when value is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


__all__ = [
    'ORDER_STATUSES',
    'TRANSACTION_TYPES',
    'TRANSACTION_STATUSES',
    'USER_ROLES',
    'NETWORKS',
    'INVENTORY_CHANNELS',
    'DatabaseSchema',
    'DatabaseInitializer',
    'ModelValidator',
    'to_object_id',
]


if __name__ == '__main__':
    """
    Standalone script to initialize database collections and indexes.
    """
    from flask_pymongo import PyMongo
    from flask import Flask
    from config.environment import AppConfig

    logging.basicConfig(level=logging.INFO)
    config = AppConfig.from_env()

    app = Flask(__name__)
    app.config['MONGO_URI'] = config.MONGO_URI
    mongo = PyMongo(app)

    print("=" * 60)
    print("DataMart Backend - Database Initialization")
    print("=" * 60)

    results = DatabaseInitializer(mongo.db).initialize_collections()

    print(f"Collections created: {len(results['created'])}")
    print(f"Collections already existing: {len(results['existing'])}")
    print(f"Indexes created: {len(results['indexes_created'])}")
    for error in results['errors']:
        print(f"  - {error}")
