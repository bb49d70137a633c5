from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any, Dict, List, Optional
import logging

from supabase import Client

from api.models import Account, ExpenseRecord, QueryFilter
from lib.error_handler import StorageError

logger = logging.getLogger(__name__)


def _day_start(day: date, tz: tzinfo) -> str:
    return datetime.combine(day, time.min, tzinfo=tz).isoformat()


class ExpenseStore:
    """Profiles and expenses kept in Supabase"""

    def __init__(self, supabase_client: Client):
        self.supabase = supabase_client
        self.profiles_table = 'profiles'
        self.expenses_table = 'expenses'

    def find_account(self, phone: str) -> Optional[Account]:
        """Look up the profile linked to a normalized WhatsApp number"""
        try:
            result = self.supabase.table(self.profiles_table)\
                .select('id, whatsapp_phone, groq_api_key')\
                .eq('whatsapp_phone', phone)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise StorageError(f"Profile lookup error: {str(e)}")

        if not result.data:
            return None
        profile = result.data[0]
        return Account(
            id=str(profile['id']),
            phone=profile.get('whatsapp_phone') or phone,
            api_key=profile.get('groq_api_key') or None
        )

    def insert_expenses(self, records: List[ExpenseRecord]) -> List[Dict[str, Any]]:
        """Insert all records in one batch and return the stored rows"""
        rows = [record.to_row() for record in records]
        try:
            result = self.supabase.table(self.expenses_table).insert(rows).execute()
        except Exception as e:
            raise StorageError(f"Expense insert error: {str(e)}")

        logger.info(f"Inserted {len(rows)} expenses")
        return result.data or rows

    def fetch_since(self, user_id: str, since: datetime, columns: str = 'amount, category, description, date') -> List[Dict[str, Any]]:
        """All expenses dated on or after `since`, newest first"""
        try:
            result = self.supabase.table(self.expenses_table)\
                .select(columns)\
                .eq('user_id', user_id)\
                .gte('date', since.isoformat())\
                .order('date', desc=True)\
                .execute()
        except Exception as e:
            raise StorageError(f"Expense read error: {str(e)}")
        return result.data or []

    def fetch_expenses(self, user_id: str, query_filter: QueryFilter, tz: tzinfo) -> List[Dict[str, Any]]:
        """Scoped, ordered, limited read; date bounds are whole local days"""
        try:
            query = self.supabase.table(self.expenses_table)\
                .select('amount, category, description, date')\
                .eq('user_id', user_id)
            if query_filter.start_date:
                query = query.gte('date', _day_start(query_filter.start_date, tz))
            if query_filter.end_date:
                query = query.lt('date', _day_start(query_filter.end_date + timedelta(days=1), tz))
            if query_filter.category:
                query = query.eq('category', query_filter.category)
            result = query\
                .order(query_filter.sort_by, desc=query_filter.sort_order == 'desc')\
                .limit(query_filter.limit)\
                .execute()
        except Exception as e:
            raise StorageError(f"Expense query error: {str(e)}")
        return result.data or []
