import unittest
from datetime import date, datetime, timedelta

from gatekeep.core.counter_store import MemoryCounterStore
from gatekeep.core.errors import RateLimitExceeded
from gatekeep.core.rate_limiter import RateLimiter

TODAY = date(2024, 3, 15)
YESTERDAY = TODAY - timedelta(days=1)


class BrokenStore:
    def __init__(self, fail_load=True, fail_save=True):
        self.fail_load = fail_load
        self.fail_save = fail_save

    def load(self, kind):
        if self.fail_load:
            raise OSError("disk unavailable")
        return None

    def save(self, kind, record):
        if self.fail_save:
            raise OSError("read-only file system")


class TestRateLimiter(unittest.TestCase):
    def setUp(self):
        self.store = MemoryCounterStore()
        self.limiter = RateLimiter(self.store, limits={'block': 20, 'report': 10}, today=lambda: TODAY)

    def test_fresh_counter_has_full_quota(self):
        status = self.limiter.status('block')
        self.assertEqual(status.remaining, 20)
        self.assertFalse(status.is_limit_reached)
        self.assertEqual(status.daily_limit, 20)
        self.assertEqual(status.resets_at, datetime(2024, 3, 16))

    def test_record_action_counts_and_persists(self):
        status = self.limiter.record_action('block')
        self.assertEqual(status.remaining, 19)
        self.assertEqual(self.store.records['block'], {'date': '2024-03-15', 'count': 1})

    def test_remaining_never_negative(self):
        for _ in range(25):
            status = self.limiter.record_action('block')

        self.assertEqual(status.remaining, 0)
        self.assertTrue(status.is_limit_reached)
        self.assertEqual(self.limiter.remaining('block'), 0)
        self.assertEqual(self.limiter.count('block'), 25)
        self.assertFalse(self.limiter.can_perform('block'))

    def test_yesterdays_counter_rolls_over_without_writing(self):
        store = MemoryCounterStore({'block': {'date': YESTERDAY.isoformat(), 'count': 20}})
        limiter = RateLimiter(store, limits={'block': 20}, today=lambda: TODAY)

        self.assertEqual(limiter.remaining('block'), 20)
        self.assertFalse(limiter.is_limit_reached('block'))
        self.assertEqual(store.writes, 0)

        limiter.record_action('block')
        self.assertEqual(store.records['block'], {'date': TODAY.isoformat(), 'count': 1})

    def test_day_change_while_running(self):
        days = [TODAY]
        limiter = RateLimiter(self.store, limits={'block': 2}, today=lambda: days[0])
        limiter.record_action('block')
        limiter.record_action('block')
        self.assertTrue(limiter.is_limit_reached('block'))

        days[0] = TODAY + timedelta(days=1)
        self.assertEqual(limiter.remaining('block'), 2)

    def test_malformed_record_reads_as_zero(self):
        self.store.records['block'] = {'date': 'not-a-date', 'count': 'x'}
        self.assertEqual(self.limiter.remaining('block'), 20)

    def test_unreadable_store_fails_open(self):
        limiter = RateLimiter(BrokenStore(), limits={'block': 20}, today=lambda: TODAY)
        self.assertEqual(limiter.remaining('block'), 20)
        self.assertTrue(limiter.can_perform('block'))

    def test_unwritable_store_still_reports_in_memory_count(self):
        limiter = RateLimiter(BrokenStore(fail_load=False), limits={'block': 20}, today=lambda: TODAY)
        status = limiter.record_action('block')
        self.assertEqual(status.remaining, 19)

    def test_unknown_kind_raises(self):
        with self.assertRaises(ValueError):
            self.limiter.remaining('follow')
        with self.assertRaises(ValueError):
            self.limiter.record_action('follow')

    def test_ensure_raises_when_spent(self):
        limiter = RateLimiter(self.store, limits={'report': 1}, today=lambda: TODAY)
        self.assertEqual(limiter.ensure('report').remaining, 1)
        limiter.record_action('report')

        with self.assertRaises(RateLimitExceeded) as ctx:
            limiter.ensure('report')
        self.assertEqual(ctx.exception.kind, 'report')
        self.assertEqual(ctx.exception.limit, 1)

    def test_reset_restores_quota(self):
        for _ in range(3):
            self.limiter.record_action('report')
        status = self.limiter.reset('report')
        self.assertEqual(status.remaining, 10)
        self.assertEqual(self.store.records['report'], {'date': '2024-03-15', 'count': 0})

    def test_kinds_are_independent(self):
        self.limiter.record_action('block')
        self.assertEqual(self.limiter.remaining('report'), 10)

    def test_listeners_receive_status_changes(self):
        seen = []
        unsubscribe = self.limiter.subscribe(seen.append)
        self.limiter.record_action('block')
        unsubscribe()
        self.limiter.record_action('block')

        self.assertEqual([s.remaining for s in seen], [19])

    def test_status_to_dict(self):
        data = self.limiter.status('report').to_dict()
        self.assertEqual(data['kind'], 'report')
        self.assertEqual(data['remaining'], 10)
        self.assertEqual(data['resets_at'], '2024-03-16T00:00:00')


if __name__ == '__main__':
    unittest.main()
