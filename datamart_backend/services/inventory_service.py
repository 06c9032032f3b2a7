"""
Inventory Service

Per-network availability flags for the two sales channels (web storefront and
reseller API). Each channel has an in-stock flag and a vendor-bypass flag
(skipGeonettech); the unified inStock/skipGeonettech fields are kept for older
clients.
"""

from datetime import datetime
import logging

from pymongo.errors import DuplicateKeyError

from models import NETWORKS, INVENTORY_CHANNELS, ModelValidator, to_object_id
from services.errors import Conflict, InvalidInput

logger = logging.getLogger(__name__)

TOGGLE_ATTEMPTS = 3

STOCK = 'stock'
VENDOR = 'vendor'

# kind -> (per-channel suffix, legacy field, default value)
FLAG_FIELDS = {
    STOCK: ('InStock', 'inStock', True),
    VENDOR: ('SkipGeonettech', 'skipGeonettech', False),
}


def default_inventory(network):
    return {
        'network': network,
        'webInStock': True,
        'webSkipGeonettech': False,
        'webLastUpdatedBy': None,
        'webLastUpdatedAt': None,
        'apiInStock': True,
        'apiSkipGeonettech': False,
        'apiLastUpdatedBy': None,
        'apiLastUpdatedAt': None,
        'inStock': True,
        'skipGeonettech': False,
        'updatedAt': None,
    }


def _channel_value(doc, channel, kind):
    suffix, legacy, default = FLAG_FIELDS[kind]
    value = doc.get(f'{channel}{suffix}')
    if value is None:
        value = doc.get(legacy)
    return default if value is None else bool(value)


def inventory_view(doc):
    """Flag state of a stored inventory document, falling back to legacy fields."""
    return {
        'network': doc.get('network'),
        'webInStock': _channel_value(doc, 'web', STOCK),
        'webSkipGeonettech': _channel_value(doc, 'web', VENDOR),
        'webLastUpdatedBy': doc.get('webLastUpdatedBy'),
        'webLastUpdatedAt': doc.get('webLastUpdatedAt'),
        'apiInStock': _channel_value(doc, 'api', STOCK),
        'apiSkipGeonettech': _channel_value(doc, 'api', VENDOR),
        'apiLastUpdatedBy': doc.get('apiLastUpdatedBy'),
        'apiLastUpdatedAt': doc.get('apiLastUpdatedAt'),
        'inStock': doc.get('inStock'),
        'skipGeonettech': doc.get('skipGeonettech'),
        'updatedAt': doc.get('updatedAt'),
    }


class InventoryService:

    def __init__(self, db):
        self.db = db

    @staticmethod
    def _check(network, channel=None):
        if not network or not isinstance(network, str):
            raise InvalidInput('Network is required')
        if channel is not None and not ModelValidator.validate_channel(channel):
            raise InvalidInput(f'Invalid channel: {channel}')

    # ==================== READS ====================

    def get_inventory(self):
        """Every known network, stored or defaulted."""
        stored = {doc['network']: doc for doc in self.db.datainventories.find({}).sort('network', 1)}
        return [
            inventory_view(stored[network]) if network in stored else default_inventory(network)
            for network in NETWORKS
        ]

    def get_network_inventory(self, network):
        self._check(network)
        doc = self.db.datainventories.find_one({'network': network})
        if not doc:
            view = default_inventory(network)
            view['message'] = 'Network not found in inventory - showing defaults'
            return view
        return inventory_view(doc)

    # ==================== CHANNEL TOGGLES ====================

    def _load(self, network):
        return self.db.datainventories.find_one({'network': network})

    def _toggle_channel(self, network, channel, kind, admin_id):
        self._check(network, channel)
        suffix, legacy, default = FLAG_FIELDS[kind]
        field = f'{channel}{suffix}'
        admin_ref = to_object_id(admin_id) or admin_id

        for _ in range(TOGGLE_ATTEMPTS):
            now = datetime.utcnow()
            doc = self._load(network)

            if not doc:
                doc = default_inventory(network)
                doc[field] = not default
                doc[legacy] = doc[f'web{suffix}']
                doc[f'{channel}LastUpdatedBy'] = admin_ref
                doc[f'{channel}LastUpdatedAt'] = now
                doc['updatedAt'] = now
                try:
                    self.db.datainventories.insert_one(doc)
                except DuplicateKeyError:
                    # Created concurrently; toggle the stored document instead.
                    continue
                value = doc[field]
                break

            value = not _channel_value(doc, channel, kind)
            # Flip only the state that was read; None matches a missing field.
            result = self.db.datainventories.update_one(
                {'_id': doc['_id'], field: doc.get(field), legacy: doc.get(legacy)},
                {'$set': {
                    field: value,
                    f'{channel}LastUpdatedBy': admin_ref,
                    f'{channel}LastUpdatedAt': now,
                    'updatedAt': now,
                }}
            )
            if result.matched_count:
                break
            logger.warning(f"Inventory {network} {field} changed while toggling, re-reading")
        else:
            raise Conflict(f'Inventory for {network} is being updated, please try again')

        logger.info(f"Inventory {network} {field} set to {value} by admin {admin_id}")
        return {
            'network': network,
            field: value,
            f'{channel}LastUpdatedAt': now,
        }

    def toggle_stock(self, network, channel, admin_id):
        """Flip the in-stock flag of one channel; the other channel is untouched."""
        return self._toggle_channel(network, channel, STOCK, admin_id)

    def toggle_vendor_bypass(self, network, channel, admin_id):
        """Flip the skipGeonettech flag of one channel."""
        return self._toggle_channel(network, channel, VENDOR, admin_id)

    # ==================== LEGACY TOGGLES ====================

    def _toggle_unified(self, network, kind):
        self._check(network)
        suffix, legacy, default = FLAG_FIELDS[kind]

        for _ in range(TOGGLE_ATTEMPTS):
            now = datetime.utcnow()
            doc = self._load(network)

            if not doc:
                doc = default_inventory(network)
                value = not default
                doc.update({legacy: value, f'web{suffix}': value, f'api{suffix}': value, 'updatedAt': now})
                try:
                    self.db.datainventories.insert_one(doc)
                except DuplicateKeyError:
                    continue
                break

            current = doc.get(legacy)
            value = not (default if current is None else bool(current))
            updates = {legacy: value, f'web{suffix}': value, f'api{suffix}': value, 'updatedAt': now}
            result = self.db.datainventories.update_one(
                {'_id': doc['_id'], legacy: current}, {'$set': updates}
            )
            if result.matched_count:
                doc.update(updates)
                break
            logger.warning(f"Inventory {network} {legacy} changed while toggling, re-reading")
        else:
            raise Conflict(f'Inventory for {network} is being updated, please try again')

        logger.info(f"Inventory {network} {legacy} set to {value} for both channels")
        return inventory_view(doc)

    def toggle_stock_all(self, network):
        """Legacy toggle: flip inStock and copy it to both channels."""
        return self._toggle_unified(network, STOCK)

    def toggle_vendor_bypass_all(self, network):
        """Legacy toggle: flip skipGeonettech and copy it to both channels."""
        return self._toggle_unified(network, VENDOR)

    # ==================== MIGRATION ====================

    def migrate(self):
        """
        Copy legacy unified fields into any missing per-channel fields.

        Returns:
            dict: totalRecords, migratedRecords
        """
        total = 0
        migrated = 0

        for doc in self.db.datainventories.find({}):
            total += 1
            updates = {}
            for channel in INVENTORY_CHANNELS:
                for kind, (suffix, legacy, default) in FLAG_FIELDS.items():
                    field = f'{channel}{suffix}'
                    if doc.get(field) is None:
                        legacy_value = doc.get(legacy)
                        updates[field] = default if legacy_value is None else bool(legacy_value)

            if updates:
                self.db.datainventories.update_one({'_id': doc['_id']}, {'$set': updates})
                migrated += 1

        logger.info(f"Inventory migration: {migrated} of {total} records updated")
        return {'totalRecords': total, 'migratedRecords': migrated}
