import threading
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from sharegate import crud, models
from sharegate.core.errors import (
    InternalError,
    InvalidLink,
    InvalidPassword,
    LinkExhausted,
    LinkExpired,
    RateLimited,
)
from sharegate.services.download_authorizer import AuthorizationState, ConsumeResult
from sharegate.utils.time_utils import utcnow

IP = "198.51.100.7"
UA = "pytest-agent/1.0"


def attempts(db, **filters):
    return db.query(models.DownloadAttempt).filter_by(**filters).all()


def logs(db):
    return db.query(models.DownloadLog).all()


def current_downloads(session_factory, link_id):
    session = session_factory()
    try:
        return session.get(models.ShareLink, link_id).current_downloads
    finally:
        session.close()


class TestConsume:
    def test_usable_link_is_consumed(self, db, authorizer, make_link):
        link = make_link(max_downloads=3)
        grant = authorizer.authorize(db, token=link.token, ip_address=IP, user_agent=UA)

        assert isinstance(grant, ConsumeResult)
        assert grant.state == AuthorizationState.CONSUMED
        assert grant.share_link_id == link.id
        assert grant.storage_path == link.file.storage_path
        assert grant.filename == "Q3 report.pdf"

        db.refresh(link)
        assert link.current_downloads == 1
        [attempt] = attempts(db)
        assert attempt.success is True
        assert attempt.ip_address == IP
        assert attempt.token == link.token
        [log] = logs(db)
        assert log.id == grant.log_id
        assert log.share_link_id == link.id
        assert log.ip_address == IP
        assert log.user_agent == UA

    def test_unlimited_link_keeps_counting(self, db, authorizer, make_link):
        link = make_link()
        for _ in range(5):
            authorizer.authorize(db, token=link.token, ip_address=IP)
        db.refresh(link)
        assert link.current_downloads == 5
        assert len(logs(db)) == 5

    def test_last_allowed_download_then_exhausted(self, db, authorizer, make_link):
        link = make_link(max_downloads=2)
        authorizer.authorize(db, token=link.token, ip_address=IP)
        authorizer.authorize(db, token=link.token, ip_address=IP)
        with pytest.raises(LinkExhausted):
            authorizer.authorize(db, token=link.token, ip_address=IP)
        db.refresh(link)
        assert link.current_downloads == 2
        assert len(attempts(db, success=False)) == 1
        assert len(logs(db)) == 2


class TestRejections:
    def test_unknown_token_logs_exactly_one_failed_attempt(self, db, authorizer):
        with pytest.raises(InvalidLink):
            authorizer.authorize(db, token="no-such-token" * 3, ip_address=IP)
        [attempt] = attempts(db)
        assert attempt.success is False
        assert attempt.token == "no-such-token" * 3
        assert logs(db) == []

    def test_expired_link_is_never_usable(self, db, authorizer, make_link, expire_link):
        link = expire_link(make_link())
        with pytest.raises(LinkExpired) as exc_info:
            authorizer.authorize(db, token=link.token, ip_address=IP)
        assert exc_info.value.category.value == "expired"
        db.refresh(link)
        assert link.current_downloads == 0
        assert len(attempts(db, success=False)) == 1
        assert logs(db) == []

    def test_expired_wins_over_remaining_downloads(self, db, authorizer, make_link, expire_link):
        link = expire_link(make_link(max_downloads=100), at=utcnow() - timedelta(days=1))
        with pytest.raises(LinkExpired):
            authorizer.authorize(db, token=link.token, ip_address=IP)

    def test_deactivated_link_is_invalid(self, db, authorizer, make_link):
        link = crud.share_link.deactivate(db, share_link=make_link())
        with pytest.raises(InvalidLink):
            authorizer.authorize(db, token=link.token, ip_address=IP)
        assert len(attempts(db, success=False)) == 1

    def test_password_protected_link(self, db, authorizer, make_link):
        link = make_link(password="open sesame")
        with pytest.raises(InvalidPassword):
            authorizer.authorize(db, token=link.token, ip_address=IP)
        with pytest.raises(InvalidPassword):
            authorizer.authorize(db, token=link.token, ip_address=IP, password="guess")
        grant = authorizer.authorize(db, token=link.token, ip_address=IP, password="open sesame")
        assert grant.state == AuthorizationState.CONSUMED
        assert len(attempts(db, success=False)) == 2
        assert len(attempts(db, success=True)) == 1


class TestRateLimiting:
    def test_ip_limit_rejects_before_lookup_and_records_nothing(self, db, authorizer, make_link, monkeypatch):
        link = make_link()
        for _ in range(20):
            authorizer.authorize(db, token=link.token, ip_address=IP)

        lookups = []
        original = crud.share_link.get_by_token
        monkeypatch.setattr(
            crud.share_link, "get_by_token",
            lambda db, *, token: lookups.append(token) or original(db, token=token),
        )
        with pytest.raises(RateLimited):
            authorizer.authorize(db, token=link.token, ip_address=IP)

        assert lookups == []
        assert len(attempts(db)) == 20
        db.refresh(link)
        assert link.current_downloads == 20

    def test_token_failures_lock_the_link_for_everyone(self, db, authorizer, make_link):
        link = make_link(password="right")
        for i in range(10):
            with pytest.raises(InvalidPassword):
                authorizer.authorize(db, token=link.token, ip_address=f"192.0.2.{i}", password="wrong")
        with pytest.raises(RateLimited):
            authorizer.authorize(db, token=link.token, ip_address="203.0.113.50", password="right")
        db.refresh(link)
        assert link.current_downloads == 0

    def test_limits_lift_once_attempts_age_out(self, db, authorizer, make_link):
        link = make_link()
        start = utcnow()
        for _ in range(20):
            authorizer.authorize(db, token=link.token, ip_address=IP, now=start)
        with pytest.raises(RateLimited):
            authorizer.authorize(db, token=link.token, ip_address=IP, now=start + timedelta(minutes=1))
        grant = authorizer.authorize(db, token=link.token, ip_address=IP, now=start + timedelta(minutes=61))
        assert grant.state == AuthorizationState.CONSUMED


class TestAtomicity:
    def test_store_failure_rolls_back_every_write(self, db, authorizer, make_link, session_factory, monkeypatch):
        link = make_link(max_downloads=1)

        def broken_add(db, **kwargs):
            raise OperationalError("INSERT INTO download_logs", {}, Exception("disk I/O error"))

        monkeypatch.setattr(crud.download_log, "add", broken_add)
        with pytest.raises(InternalError) as exc_info:
            authorizer.authorize(db, token=link.token, ip_address=IP)
        assert exc_info.value.error_id.startswith("ERR_")
        assert "disk I/O error" not in exc_info.value.to_dict()["error"]

        check = session_factory()
        try:
            assert check.get(models.ShareLink, link.id).current_downloads == 0
            assert check.query(models.DownloadAttempt).count() == 0
            assert check.query(models.DownloadLog).count() == 0
        finally:
            check.close()

    def test_link_changed_after_read_is_revalidated(self, db, authorizer, make_link, session_factory, monkeypatch):
        link = make_link(max_downloads=1)
        original = crud.share_link.increment_downloads

        def consumed_elsewhere_first(db, *, share_link_id, now):
            # Another worker takes the last download between validation and increment
            other = session_factory()
            try:
                assert original(other, share_link_id=share_link_id, now=now)
                other.commit()
            finally:
                other.close()
            return original(db, share_link_id=share_link_id, now=now)

        monkeypatch.setattr(crud.share_link, "increment_downloads", consumed_elsewhere_first)
        with pytest.raises(LinkExhausted):
            authorizer.authorize(db, token=link.token, ip_address=IP)

        assert current_downloads(session_factory, link.id) == 1
        assert len(attempts(db, success=False)) == 1
        assert logs(db) == []


class TestConcurrency:
    def _race(self, session_factory, authorizer, token, workers):
        barrier = threading.Barrier(workers)
        outcomes = []
        lock = threading.Lock()

        def worker(i):
            session = session_factory()
            try:
                barrier.wait()
                try:
                    authorizer.authorize(session, token=token, ip_address=f"10.0.0.{i}", user_agent=UA)
                    result = "ok"
                except LinkExhausted:
                    result = "exhausted"
                except Exception as e:  # surfaced through the assertion below
                    result = repr(e)
                with lock:
                    outcomes.append(result)
            finally:
                session.close()

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)
        return outcomes

    def test_two_racers_for_a_single_download(self, make_link, session_factory, authorizer):
        link = make_link(max_downloads=1)
        outcomes = self._race(session_factory, authorizer, link.token, workers=2)
        assert sorted(outcomes) == ["exhausted", "ok"]
        assert current_downloads(session_factory, link.id) == 1

    @pytest.mark.parametrize("max_downloads,workers", [(1, 8), (3, 9)])
    def test_never_more_than_n_successes(self, make_link, session_factory, authorizer, max_downloads, workers):
        link = make_link(max_downloads=max_downloads)
        outcomes = self._race(session_factory, authorizer, link.token, workers=workers)

        assert len(outcomes) == workers
        assert outcomes.count("ok") == max_downloads
        assert outcomes.count("exhausted") == workers - max_downloads
        assert current_downloads(session_factory, link.id) == max_downloads

        session = session_factory()
        try:
            assert session.query(models.DownloadLog).count() == max_downloads
            assert session.query(models.DownloadAttempt).filter_by(success=True).count() == max_downloads
        finally:
            session.close()
