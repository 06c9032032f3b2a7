"""
Reporting Service

Read-only aggregates for the admin console: daily summary, dashboard
statistics, per-user order history and the filtered order, transaction and
user lists. Nothing here writes.
"""

import math
import re
from datetime import datetime, timedelta
import logging

from models import to_object_id
from services.errors import InvalidInput, NotFound

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 1000
USER_SORT_FIELDS = ('walletBalance', 'createdAt', 'name', 'email', 'lastLogin')


def page_params(page, limit, default_limit):
    """Parse page/limit query values into positive ints."""
    try:
        page = int(page) if page not in (None, '') else 1
        limit = int(limit) if limit not in (None, '') else default_limit
    except (TypeError, ValueError):
        raise InvalidInput('page and limit must be integers')
    return max(page, 1), min(max(limit, 1), MAX_PAGE_SIZE)


def total_pages(total, limit):
    return int(math.ceil(total / float(limit))) if limit else 0


def parse_date(value, name='date'):
    """Parse YYYY-MM-DD or an ISO timestamp into a naive UTC datetime."""
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
    except ValueError:
        raise InvalidInput(f'Invalid {name}: {value}')
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - (parsed.utcoffset() or timedelta(0))
    return parsed


def _contains(text):
    return {'$regex': re.escape(str(text)), '$options': 'i'}


def _date_range(start_date, end_date):
    """createdAt filter where end_date is inclusive of its whole day."""
    created = {}
    if start_date:
        created['$gte'] = parse_date(start_date, 'startDate')
    if end_date:
        created['$lte'] = parse_date(end_date, 'endDate') + timedelta(days=1)
    return created


def _first(result, key, default=0):
    rows = list(result)
    return rows[0].get(key, default) if rows else default


class ReportingService:

    def __init__(self, db):
        self.db = db

    def _user_ids_by_phone(self, phone):
        return [u['_id'] for u in self.db.users.find({'phoneNumber': _contains(phone)}, {'_id': 1})]

    def _populate_users(self, docs, fields=('name', 'email', 'phoneNumber')):
        owner_ids = list({d['userId'] for d in docs if d.get('userId')})
        if not owner_ids:
            return docs
        projection = {field: 1 for field in fields}
        owners = {u['_id']: u for u in self.db.users.find({'_id': {'$in': owner_ids}}, projection)}
        for doc in docs:
            owner = owners.get(doc.get('userId'))
            if owner:
                doc['userId'] = owner
        return docs

    # ==================== USERS ====================

    def list_users(self, page=1, limit=10, search='', sort_by='walletBalance', sort_order='desc'):
        page, limit = page_params(page, limit, 10)
        if sort_by not in USER_SORT_FIELDS:
            sort_by = 'walletBalance'

        query = {}
        if search:
            query['$or'] = [
                {'name': _contains(search)},
                {'email': _contains(search)},
                {'phoneNumber': _contains(search)},
                {'referralCode': _contains(search)},
            ]

        users = list(
            self.db.users.find(query, {'password': 0})
            .sort(sort_by, 1 if sort_order == 'asc' else -1)
            .skip((page - 1) * limit)
            .limit(limit)
        )
        total = self.db.users.count_documents(query)

        return {
            'users': users,
            'totalPages': total_pages(total, limit),
            'currentPage': page,
            'totalUsers': total,
        }

    # ==================== ORDERS ====================

    def list_orders(self, page=1, limit=100, status='', network='', start_date='', end_date='',
                    phone_number='', user_phone=''):
        """Orders newest first, with revenue over the completed ones."""
        page, limit = page_params(page, limit, 100)

        query = {}
        if status:
            query['status'] = status
        if network:
            query['network'] = network
        if phone_number:
            query['phoneNumber'] = _contains(phone_number)
        created = _date_range(start_date, end_date)
        if created:
            query['createdAt'] = created

        user_ids = None
        if user_phone:
            user_ids = self._user_ids_by_phone(user_phone)
            if not user_ids:
                return {
                    'orders': [],
                    'totalPages': 0,
                    'currentPage': page,
                    'totalOrders': 0,
                    'totalRevenue': 0,
                    'message': 'No users found with this phone number',
                }
            query['userId'] = {'$in': user_ids}

        orders = list(
            self.db.datapurchases.find(query)
            .sort('createdAt', -1)
            .skip((page - 1) * limit)
            .limit(limit)
        )
        total = self.db.datapurchases.count_documents(query)

        revenue = self.db.datapurchases.aggregate([
            {'$match': query},
            {'$match': {'status': 'completed'}},
            {'$group': {'_id': None, 'total': {'$sum': '$price'}}},
        ])

        user_stats = None
        if user_ids:
            stats = self.db.datapurchases.aggregate([
                {'$match': {'userId': {'$in': user_ids}}},
                {'$group': {
                    '_id': '$userId',
                    'totalOrders': {'$sum': 1},
                    'totalSpent': {'$sum': {'$cond': [{'$eq': ['$status', 'completed']}, '$price', 0]}},
                    'completedOrders': {'$sum': {'$cond': [{'$eq': ['$status', 'completed']}, 1, 0]}},
                }},
                {'$lookup': {'from': 'users', 'localField': '_id', 'foreignField': '_id', 'as': 'userInfo'}},
                {'$unwind': '$userInfo'},
            ])
            user_stats = [{
                'userId': stat['_id'],
                'name': stat['userInfo'].get('name'),
                'email': stat['userInfo'].get('email'),
                'phoneNumber': stat['userInfo'].get('phoneNumber'),
                'walletBalance': stat['userInfo'].get('walletBalance'),
                'totalOrders': stat['totalOrders'],
                'completedOrders': stat['completedOrders'],
                'totalSpent': stat['totalSpent'],
            } for stat in stats]

        return {
            'orders': self._populate_users(orders),
            'totalPages': total_pages(total, limit),
            'currentPage': page,
            'totalOrders': total,
            'totalRevenue': _first(revenue, 'total'),
            'userStats': user_stats,
        }

    def user_orders(self, user_id, page=1, limit=100):
        oid = to_object_id(user_id)
        if not oid:
            raise InvalidInput('Invalid user ID')
        if not self.db.users.find_one({'_id': oid}, {'_id': 1}):
            raise NotFound('User not found')

        page, limit = page_params(page, limit, 100)
        query = {'userId': oid}

        orders = list(
            self.db.datapurchases.find(query)
            .sort('createdAt', -1)
            .skip((page - 1) * limit)
            .limit(limit)
        )
        total = self.db.datapurchases.count_documents(query)
        spent = self.db.datapurchases.aggregate([
            {'$match': {'userId': oid, 'status': 'completed'}},
            {'$group': {'_id': None, 'total': {'$sum': '$price'}}},
        ])

        return {
            'orders': orders,
            'totalPages': total_pages(total, limit),
            'currentPage': page,
            'totalOrders': total,
            'totalSpent': _first(spent, 'total'),
        }

    # ==================== TRANSACTIONS ====================

    def list_transactions(self, page=1, limit=100, transaction_type='', status='', gateway='', start_date='',
                          end_date='', search='', phone_number=''):
        page, limit = page_params(page, limit, 100)

        query = {}
        if transaction_type:
            query['type'] = transaction_type
        if status:
            query['status'] = status
        if gateway:
            query['gateway'] = gateway

        if search:
            oid = to_object_id(search)
            if oid:
                query['userId'] = oid
            else:
                query['reference'] = _contains(search)

        if phone_number:
            user_ids = self._user_ids_by_phone(phone_number)
            if not user_ids:
                return {
                    'transactions': [],
                    'totalPages': 0,
                    'currentPage': page,
                    'totalTransactions': 0,
                    'amountByType': {},
                }
            query['userId'] = {'$in': user_ids}

        created = _date_range(start_date, end_date)
        if created:
            query['createdAt'] = created

        transactions = list(
            self.db.transactions.find(query)
            .sort('createdAt', -1)
            .skip((page - 1) * limit)
            .limit(limit)
        )
        total = self.db.transactions.count_documents(query)

        totals = self.db.transactions.aggregate([
            {'$match': query},
            {'$match': {'status': 'completed'}},
            {'$group': {'_id': '$type', 'total': {'$sum': '$amount'}}},
        ])

        return {
            'transactions': self._populate_users(transactions),
            'totalPages': total_pages(total, limit),
            'currentPage': page,
            'totalTransactions': total,
            'amountByType': {row['_id']: row['total'] for row in totals},
        }

    # ==================== DASHBOARD ====================

    def dashboard_statistics(self):
        purchases = self.db.datapurchases

        total_wallet = _first(self.db.users.aggregate([
            {'$group': {'_id': None, 'total': {'$sum': '$walletBalance'}}},
        ]), 'total')

        completed_orders = purchases.count_documents({'status': 'completed'})
        total_revenue = _first(purchases.aggregate([
            {'$match': {'status': 'completed'}},
            {'$group': {'_id': None, 'total': {'$sum': '$price'}}},
        ]), 'total')

        network_stats = list(purchases.aggregate([
            {'$match': {'status': 'completed'}},
            {'$group': {'_id': '$network', 'count': {'$sum': 1}, 'revenue': {'$sum': '$price'}}},
            {'$sort': {'revenue': -1}},
        ]))

        recent_orders = list(purchases.find().sort('createdAt', -1).limit(10))

        return {
            'userStats': {
                'totalUsers': self.db.users.count_documents({}),
                'totalWalletBalance': total_wallet,
            },
            'orderStats': {
                'totalOrders': purchases.count_documents({}),
                'completedOrders': completed_orders,
                'pendingOrders': purchases.count_documents({'status': 'pending'}),
                'failedOrders': purchases.count_documents({'status': 'failed'}),
            },
            'financialStats': {
                'totalRevenue': total_revenue,
                'averageOrderValue': total_revenue / completed_orders if completed_orders else 0,
            },
            'networkStats': network_stats,
            'recentOrders': self._populate_users(recent_orders, fields=('name', 'email')),
        }

    # ==================== DAILY SUMMARY ====================

    def _deposit_analytics(self, deposit_filter):
        transactions = self.db.transactions

        summary = list(transactions.aggregate([
            {'$match': deposit_filter},
            {'$group': {
                '_id': None,
                'totalDeposits': {'$sum': '$amount'},
                'depositCount': {'$sum': 1},
                'averageDeposit': {'$avg': '$amount'},
            }},
        ]))
        summary = summary[0] if summary else {'totalDeposits': 0, 'depositCount': 0, 'averageDeposit': 0}
        summary.pop('_id', None)

        by_gateway = [{
            'gateway': row['_id'] or 'unknown',
            'count': row['count'],
            'totalAmount': row['totalAmount'],
            'averageAmount': row['averageAmount'],
        } for row in transactions.aggregate([
            {'$match': deposit_filter},
            {'$group': {
                '_id': '$gateway',
                'count': {'$sum': 1},
                'totalAmount': {'$sum': '$amount'},
                'averageAmount': {'$avg': '$amount'},
            }},
            {'$sort': {'totalAmount': -1}},
        ])]

        top_depositors = [{
            'userId': row['_id'],
            'name': row['userDetails'].get('name'),
            'email': row['userDetails'].get('email'),
            'phoneNumber': row['userDetails'].get('phoneNumber'),
            'totalDeposited': row['totalDeposited'],
            'depositCount': row['depositCount'],
            'averageDeposit': row['averageDeposit'],
            'firstDeposit': row['firstDeposit'],
            'lastDeposit': row['lastDeposit'],
        } for row in transactions.aggregate([
            {'$match': deposit_filter},
            {'$group': {
                '_id': '$userId',
                'totalDeposited': {'$sum': '$amount'},
                'depositCount': {'$sum': 1},
                'averageDeposit': {'$avg': '$amount'},
                'firstDeposit': {'$min': '$createdAt'},
                'lastDeposit': {'$max': '$createdAt'},
            }},
            {'$sort': {'totalDeposited': -1}},
            {'$limit': 10},
            {'$lookup': {'from': 'users', 'localField': '_id', 'foreignField': '_id', 'as': 'userDetails'}},
            {'$unwind': '$userDetails'},
        ])]

        hourly = [{
            'hour': row['_id'],
            'count': row['count'],
            'amount': row['totalAmount'],
        } for row in transactions.aggregate([
            {'$match': deposit_filter},
            {'$group': {'_id': {'$hour': '$createdAt'}, 'count': {'$sum': 1}, 'totalAmount': {'$sum': '$amount'}}},
            {'$sort': {'_id': 1}},
        ])]

        return {
            'summary': summary,
            'byGateway': by_gateway,
            'topDepositors': top_depositors,
            'hourlyPattern': hourly,
        }

    def _transaction_search(self, date_filter, filters, page, limit):
        query = dict(date_filter)
        if filters.get('transactionType'):
            query['type'] = filters['transactionType']
        if filters.get('transactionStatus'):
            query['status'] = filters['transactionStatus']
        if filters.get('gateway'):
            query['gateway'] = filters['gateway']
        if filters.get('reference'):
            query['reference'] = _contains(filters['reference'])
        user_oid = to_object_id(filters.get('userId'))
        if user_oid:
            query['userId'] = user_oid

        phone, email, search = filters.get('phoneNumber'), filters.get('email'), filters.get('search')
        if phone or email or search:
            user_query = {}
            if phone:
                user_query['phoneNumber'] = _contains(phone)
            if email:
                user_query['email'] = _contains(email)
            if search:
                user_query['$or'] = [
                    {'name': _contains(search)},
                    {'email': _contains(search)},
                    {'phoneNumber': _contains(search)},
                ]
            user_ids = [u['_id'] for u in self.db.users.find(user_query, {'_id': 1})]
            if user_oid:
                user_ids = [i for i in user_ids if i == user_oid]
            if not user_ids:
                return {
                    'transactions': [],
                    'totalTransactions': 0,
                    'currentPage': page,
                    'totalPages': 0,
                    'hasNextPage': False,
                    'hasPrevPage': False,
                }
            query['userId'] = {'$in': user_ids}

        total = self.db.transactions.count_documents(query)
        rows = list(
            self.db.transactions.find(query)
            .sort('createdAt', -1)
            .skip((page - 1) * limit)
            .limit(limit)
        )
        owners = {
            u['_id']: u for u in self.db.users.find(
                {'_id': {'$in': list({r['userId'] for r in rows if r.get('userId')})}},
                {'name': 1, 'email': 1, 'phoneNumber': 1, 'walletBalance': 1}
            )
        }

        transactions = []
        for row in rows:
            owner = owners.get(row.get('userId'))
            transactions.append({
                'id': row['_id'],
                'reference': row.get('reference'),
                'type': row.get('type'),
                'amount': row.get('amount'),
                'status': row.get('status'),
                'gateway': row.get('gateway'),
                'createdAt': row.get('createdAt'),
                'balanceAfterTransaction': (owner or {}).get('walletBalance') or 0,
                'user': {
                    'id': owner['_id'],
                    'name': owner.get('name'),
                    'email': owner.get('email'),
                    'phoneNumber': owner.get('phoneNumber'),
                    'currentWalletBalance': owner.get('walletBalance'),
                } if owner else None,
                'metadata': row.get('metadata'),
            })

        pages = total_pages(total, limit)
        return {
            'transactions': transactions,
            'totalTransactions': total,
            'currentPage': page,
            'totalPages': pages,
            'hasNextPage': page < pages,
            'hasPrevPage': page > 1,
        }

    def daily_summary(self, date=None, transaction_page=1, transaction_limit=20, **filters):
        """
        Sales, deposit and transaction analytics for one UTC day.

        Keyword filters narrow only the transaction search section: search,
        phoneNumber, email, reference, gateway, transactionType,
        transactionStatus, userId.
        """
        date = date or datetime.utcnow().strftime('%Y-%m-%d')
        start = parse_date(date)
        start = datetime(start.year, start.month, start.day)
        date_filter = {'createdAt': {'$gte': start, '$lt': start + timedelta(days=1)}}
        page, limit = page_params(transaction_page, transaction_limit, 20)

        purchases = self.db.datapurchases
        completed = dict(date_filter, status='completed')

        total_orders = purchases.count_documents(date_filter)
        total_revenue = _first(purchases.aggregate([
            {'$match': completed},
            {'$group': {'_id': None, 'totalRevenue': {'$sum': '$price'}}},
        ]), 'totalRevenue')

        capacity_details = [{
            'network': row['_id']['network'],
            'capacity': row['_id']['capacity'],
            'count': row['count'],
            'totalGB': row['totalCapacity'],
        } for row in purchases.aggregate([
            {'$match': completed},
            {'$group': {
                '_id': {'network': '$network', 'capacity': '$capacity'},
                'count': {'$sum': 1},
                'totalCapacity': {'$sum': '$capacity'},
            }},
            {'$sort': {'_id.network': 1, '_id.capacity': 1}},
        ])]

        network_summary = [{
            'network': row['_id'],
            'count': row['count'],
            'totalGB': row['totalCapacity'],
            'revenue': row['totalRevenue'],
        } for row in purchases.aggregate([
            {'$match': completed},
            {'$group': {
                '_id': '$network',
                'count': {'$sum': 1},
                'totalCapacity': {'$sum': '$capacity'},
                'totalRevenue': {'$sum': '$price'},
            }},
            {'$sort': {'_id': 1}},
        ])]

        total_capacity = sum(row['totalGB'] for row in network_summary)

        status_summary = [{'status': row['_id'], 'count': row['count']} for row in purchases.aggregate([
            {'$match': date_filter},
            {'$group': {'_id': '$status', 'count': {'$sum': 1}}},
            {'$sort': {'count': -1}},
        ])]

        deposit_filter = dict(date_filter, type='deposit', status='completed')
        deposits = self._deposit_analytics(deposit_filter)

        search_filters = {key: filters.get(key) or '' for key in (
            'search', 'phoneNumber', 'email', 'reference', 'gateway',
            'transactionType', 'transactionStatus', 'userId'
        )}
        search_results = self._transaction_search(date_filter, search_filters, page, limit)

        unique_customers = len(purchases.distinct('userId', date_filter))
        unique_depositors = len(self.db.transactions.distinct('userId', deposit_filter))

        day_transactions = list(self.db.transactions.find(
            date_filter, {'gateway': 1, 'type': 1, 'status': 1, 'amount': 1}
        ))
        paystack = [t for t in day_transactions if t.get('gateway') == 'paystack']
        paystack_summary = {
            'total': len(paystack),
            'completed': sum(1 for t in paystack if t.get('status') == 'completed'),
            'pending': sum(1 for t in paystack if t.get('status') == 'pending'),
            'failed': sum(1 for t in paystack if t.get('status') == 'failed'),
            'totalAmount': sum(t.get('amount', 0) for t in paystack if t.get('status') == 'completed'),
        }

        admin_deposits = [t for t in day_transactions if t.get('gateway') == 'admin-deposit']
        admin_deductions = [t for t in day_transactions if t.get('gateway') == 'admin-deduction']
        refunds = [t for t in day_transactions if t.get('type') == 'refund']
        admin_summary = {
            'total': len({t['_id'] for t in admin_deposits + admin_deductions + refunds}),
            'deposits': len(admin_deposits),
            'deductions': len(admin_deductions),
            'refunds': len(refunds),
            'totalAdminDeposits': sum(t.get('amount', 0) for t in admin_deposits),
            'totalAdminDeductions': sum(t.get('amount', 0) for t in admin_deductions),
            'totalRefunds': sum(t.get('amount', 0) for t in refunds),
        }

        hourly = deposits['hourlyPattern']
        summary = deposits['summary']

        return {
            'date': date,
            'summary': {
                'totalOrders': total_orders,
                'totalRevenue': total_revenue,
                'totalDeposits': summary['totalDeposits'],
                'totalCapacityGB': total_capacity,
                'uniqueCustomers': unique_customers,
                'depositCount': summary['depositCount'],
                'averageDeposit': summary['averageDeposit'],
                'uniqueDepositors': unique_depositors,
            },
            'networkSummary': network_summary,
            'capacityDetails': capacity_details,
            'statusSummary': status_summary,
            'depositAnalytics': deposits,
            'transactionManagement': {
                'searchResults': search_results,
                'paystackSummary': paystack_summary,
                'adminSummary': admin_summary,
                'filters': search_filters,
            },
            'businessInsights': {
                'peakDepositHour': max(hourly, key=lambda h: h['amount']) if hourly else None,
                'topGateway': deposits['byGateway'][0] if deposits['byGateway'] else None,
                'customerEngagement': {
                    'totalCustomers': unique_customers,
                    'depositingCustomers': unique_depositors,
                },
            },
        }
