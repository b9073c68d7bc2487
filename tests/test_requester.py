"""Tests for request building and the executor state machine."""

import json

import pytest

from github_client.api.cancellation import CancellationToken
from github_client.api.errors import (
    AbuseRateLimited,
    Cancelled,
    DecodeError,
    NotFoundError,
    RateLimitExceeded,
    RetryExhausted,
    ServerError,
    TransportError,
)
from github_client.api.models import RateLimitRecord
from github_client.api.rate_limit_handler import FailRateLimitHandler, RateLimitAction
from github_client.api.requester import DEFAULT_ACCEPT, Requester, RequestSpec

from .conftest import API, NOW, make_response


def get_user(executor):
    return executor.new_request().with_url_path("user").build()


class TestRequester:
    """Test cases for building request specs."""

    def test_url_path_parts(self):
        spec = Requester().with_url_path("/repos", "octocat", "hello", "pulls", 7).build()
        assert spec.path == "/repos/octocat/hello/pulls/7"

    def test_absolute_url_kept(self):
        spec = Requester().with_url_path("https://api.github.com/users/octocat").build()
        assert spec.path == "https://api.github.com/users/octocat"

    def test_params_skip_none(self):
        spec = Requester().with_param("state", "open").with_param("sort", None) \
            .with_param("draft", False).build()
        assert spec.query_params == (("state", "open"), ("draft", "false"))

    def test_default_idempotence_follows_verb(self):
        assert Requester().build().idempotent
        assert not Requester().method("post").build().idempotent
        assert not Requester().method("PUT").build().idempotent
        assert Requester().method("POST").retry_safe().build().idempotent

    def test_fields_become_json_body(self):
        spec = Requester().method("POST").with_field("title", "Bug").with_field("draft", True).build()
        assert spec.body == {"title": "Bug", "draft": True}

    def test_body_and_raw_body_are_exclusive(self):
        with pytest.raises(ValueError):
            Requester().with_body({"a": 1}).with_raw_body(b"raw").build()
        with pytest.raises(ValueError):
            Requester().with_field("a", 1).with_body({"b": 2}).build()
        with pytest.raises(ValueError):
            RequestSpec(body={"a": 1}, raw_body=b"raw")

    def test_previews_build_accept_header(self):
        spec = Requester().with_preview("inertia").with_preview("squirrel-girl").build()
        assert spec.header("accept") == (
            "application/vnd.github.inertia-preview+json, "
            "application/vnd.github.squirrel-girl-preview+json"
        )

    def test_validator_needs_a_precondition(self):
        with pytest.raises(ValueError):
            Requester().with_validator(value={"x": 1})

    def test_unbound_requester_cannot_execute(self):
        with pytest.raises(RuntimeError):
            Requester().with_url_path("user").fetch()

    def test_with_query_param_replaces(self):
        spec = Requester().with_param("per_page", 10).build().with_query_param("per_page", 50)
        assert spec.query_params == (("per_page", "50"),)


class TestExecutor:
    """Test cases for RequestExecutor."""

    def test_success_decodes_and_tracks_quota(self, executor, connector, tracker, clock):
        connector.queue(make_response(200, {'login': 'octocat'}, rate=(5000, 4999, NOW + 3600)))

        assert executor.execute(get_user(executor)) == {'login': 'octocat'}

        assert tracker.current_quota("core") == RateLimitRecord("core", 5000, 4999, NOW + 3600)
        assert clock.sleeps == []
        sent = connector.calls[0]
        assert sent.verb == "GET"
        assert sent.url == f"{API}/user"
        assert sent.headers['Authorization'] == "token test_token"
        assert sent.headers['Accept'] == DEFAULT_ACCEPT
        assert sent.headers['User-Agent'] == "github-client"
        assert sent.body is None

    def test_quota_tracks_latest_response(self, executor, connector, tracker, clock):
        for remaining in (10, 9, 8):
            connector.queue(make_response(200, {}, rate=(5000, remaining, NOW + 3600)))
        for _ in range(3):
            executor.execute(get_user(executor))
        assert tracker.current_quota("core").remaining == 8
        assert clock.sleeps == []

    def test_query_string(self, executor, connector):
        connector.queue(make_response(200, []))
        spec = executor.new_request().with_url_path("/repos/a/b/pulls") \
            .with_param("state", "open").with_param("per_page", 50).build()
        executor.execute(spec)
        assert connector.calls[0].url == f"{API}/repos/a/b/pulls?state=open&per_page=50"

    def test_json_body_and_headers(self, executor, connector):
        connector.queue(make_response(201, {'number': 1}))
        spec = executor.new_request().method("POST").with_url_path("/repos/a/b/issues") \
            .with_field("title", "Bug").with_preview("inertia").build()
        executor.execute(spec)
        sent = connector.calls[0]
        assert json.loads(sent.body) == {"title": "Bug"}
        assert sent.headers['Content-Type'] == "application/json"
        assert sent.headers['Accept'] == "application/vnd.github.inertia-preview+json"

    def test_callable_credentials(self, make_executor, connector):
        executor = make_executor(credentials=lambda: "Bearer jwt")
        connector.queue(make_response(200, {}))
        executor.execute(get_user(executor))
        assert connector.calls[0].headers['Authorization'] == "Bearer jwt"

    def test_anonymous(self, make_executor, connector):
        executor = make_executor(credentials=None)
        connector.queue(make_response(200, {}))
        executor.execute(get_user(executor))
        assert 'Authorization' not in connector.calls[0].headers

    def test_empty_body(self, executor, connector):
        connector.queue(make_response(204))
        assert executor.execute(executor.new_request().method("DELETE").with_url_path("x").build()) is None

    def test_shape_conversion(self, executor, connector):
        connector.queue(make_response(200, {'login': 'octocat'}))
        assert executor.execute(get_user(executor), lambda data: data['login'].upper()) == "OCTOCAT"

    def test_same_spec_same_result(self, executor, connector):
        connector.queue(make_response(200, {'id': 1}), make_response(200, {'id': 1}))
        spec = get_user(executor)
        assert executor.execute(spec) == executor.execute(spec)

    # -- rate limits ---------------------------------------------------------

    def test_waits_for_reset_before_sending(self, executor, connector, tracker, clock):
        tracker.update(RateLimitRecord("core", 5000, 0, NOW + 100))
        sent_at = []

        def respond(verb, url, headers, body):
            sent_at.append(clock.now)
            return make_response(200, {}, rate=(5000, 4999, NOW + 3700))

        connector.queue(respond)
        executor.execute(get_user(executor))

        assert clock.sleeps == [100.0]
        assert sent_at == [NOW + 100]
        assert tracker.current_quota("core").remaining == 4999

    def test_fail_policy_never_contacts_server(self, make_executor, connector, tracker, clock):
        executor = make_executor(rate_limit_handler=FailRateLimitHandler())
        tracker.update(RateLimitRecord("core", 5000, 0, NOW + 100))

        with pytest.raises(RateLimitExceeded) as exc:
            executor.execute(get_user(executor))

        assert exc.value.reset_time == NOW + 100
        assert connector.calls == []
        assert clock.sleeps == []

    def test_stale_record_does_not_block(self, executor, connector, tracker, clock):
        tracker.update(RateLimitRecord("core", 5000, 0, NOW - 1))
        connector.queue(make_response(200, {}))
        executor.execute(get_user(executor))
        assert clock.sleeps == []

    def test_other_category_not_blocked(self, make_executor, connector, tracker):
        executor = make_executor(rate_limit_handler=FailRateLimitHandler())
        tracker.update(RateLimitRecord("core", 5000, 0, NOW + 100))
        connector.queue(make_response(200, {'items': []}))
        executor.execute(executor.new_request().with_url_path("/search/code").with_param("q", "x").build())
        assert len(connector.calls) == 1

    def test_custom_action_delay(self, make_executor, connector, tracker, clock):
        class Handler:
            def on_quota_exhausted(self, category, record, now=None):
                return RateLimitAction.custom(5)

        executor = make_executor(rate_limit_handler=Handler())
        tracker.update(RateLimitRecord("core", 5000, 0, NOW + 100))
        connector.queue(make_response(200, {}))
        executor.execute(get_user(executor))
        assert clock.sleeps == [5]
        assert len(connector.calls) == 1

    def test_server_rejection_waits_and_resends(self, executor, connector, tracker, clock):
        connector.queue(
            make_response(403, {'message': 'API rate limit exceeded'}, rate=(5000, 0, NOW + 50)),
            make_response(200, {'ok': True}, rate=(5000, 4999, NOW + 3650)),
        )
        assert executor.execute(get_user(executor)) == {'ok': True}
        assert clock.sleeps == [50.0]
        assert len(connector.calls) == 2

    def test_server_rejection_under_fail_policy(self, make_executor, connector, clock):
        executor = make_executor(rate_limit_handler=FailRateLimitHandler())
        connector.queue(make_response(403, {'message': 'API rate limit exceeded'}, rate=(5000, 0, NOW + 50)))

        with pytest.raises(RateLimitExceeded) as exc:
            executor.execute(get_user(executor))

        assert exc.value.record.reset == NOW + 50
        assert len(connector.calls) == 1
        assert clock.sleeps == []

    def test_exhausted_search_quota_blocks_next_call(self, make_executor, connector, tracker, clock):
        executor = make_executor(rate_limit_handler=FailRateLimitHandler())
        connector.queue(make_response(200, {'items': []}, headers={'X-RateLimit-Resource': 'code_search'},
                                      rate=(10, 0, NOW + 60)))
        spec = executor.new_request().with_url_path("/search/code").with_param("q", "x").build()
        executor.execute(spec)

        assert tracker.current_quota("search").remaining == 0
        with pytest.raises(RateLimitExceeded):
            executor.execute(spec)
        assert len(connector.calls) == 1
        assert clock.sleeps == []

    # -- retries -------------------------------------------------------------

    def test_retry_bound_is_exact(self, executor, connector, clock):
        connector.queue(*[make_response(500, {'message': 'boom'}) for _ in range(3)])

        with pytest.raises(RetryExhausted) as exc:
            executor.execute(get_user(executor))

        assert exc.value.attempts == 3
        assert isinstance(exc.value.last_error, ServerError)
        assert exc.value.status_code == 500
        assert len(connector.calls) == 3
        assert clock.sleeps == [1.0, 2.0]

    def test_exhaustion_reports_rate_limit_waits(self, executor, connector, clock):
        connector.queue(
            make_response(403, {'message': 'API rate limit exceeded'}, rate=(5000, 0, NOW + 50)),
            make_response(500, {'message': 'boom'}),
            make_response(500, {'message': 'boom'}),
        )

        with pytest.raises(RetryExhausted) as exc:
            executor.execute(get_user(executor))

        assert exc.value.attempts == 3
        assert exc.value.rate_limit_waits == 1
        assert "1 rate limit waits" in exc.value.message
        assert clock.sleeps == [50.0, 2.0]

    def test_transient_failure_recovers(self, executor, connector, clock):
        connector.queue(
            TransportError("connection reset"),
            make_response(502),
            make_response(200, {'id': 1}),
        )
        assert executor.execute(get_user(executor)) == {'id': 1}
        assert len(connector.calls) == 3
        assert clock.sleeps == [1.0, 2.0]

    def test_non_idempotent_call_not_retried(self, executor, connector):
        connector.queue(make_response(502))
        spec = executor.new_request().method("POST").with_url_path("/repos/a/b/issues") \
            .with_field("title", "Bug").build()

        with pytest.raises(ServerError):
            executor.execute(spec)
        assert len(connector.calls) == 1

    def test_retry_safe_post_is_retried(self, executor, connector):
        connector.queue(make_response(502), make_response(201, {'number': 3}))
        spec = executor.new_request().method("POST").with_url_path("/repos/a/b/issues") \
            .with_field("title", "Bug").retry_safe().build()
        assert executor.execute(spec) == {'number': 3}
        assert len(connector.calls) == 2

    def test_retry_after_delay_used(self, executor, connector, clock):
        connector.queue(
            make_response(403, {'message': 'slow down'}, headers={'Retry-After': '7'}),
            make_response(200, {}),
        )
        executor.execute(get_user(executor))
        assert clock.sleeps == [7.0]

    def test_abuse_limit_exhausts_retries(self, executor, connector):
        connector.queue(*[make_response(429) for _ in range(3)])
        with pytest.raises(RetryExhausted) as exc:
            executor.execute(get_user(executor))
        assert isinstance(exc.value.last_error, AbuseRateLimited)

    def test_not_found_is_terminal(self, executor, connector, clock):
        connector.queue(make_response(404, {'message': 'Not Found'}))
        with pytest.raises(NotFoundError):
            executor.execute(get_user(executor))
        assert len(connector.calls) == 1
        assert clock.sleeps == []

    def test_malformed_body_is_terminal(self, executor, connector):
        connector.queue(make_response(200, b"{not json"))
        with pytest.raises(DecodeError) as exc:
            executor.execute(get_user(executor))
        assert exc.value.status_code == 200
        assert len(connector.calls) == 1

    def test_shape_mismatch_is_decode_error(self, executor, connector):
        connector.queue(make_response(200, {'login': 'octocat'}))
        with pytest.raises(DecodeError):
            executor.execute(get_user(executor), lambda data: data['missing'])

    # -- cancellation --------------------------------------------------------

    def test_cancelled_before_sending(self, executor, connector):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(Cancelled):
            executor.execute(get_user(executor), cancellation=token)
        assert connector.calls == []

    def test_cancelled_during_rate_limit_wait(self, make_executor, connector, tracker):
        def cancelling_sleep(seconds, token):
            token.cancel("shutting down")
            token.raise_if_cancelled()

        executor = make_executor(sleeper=cancelling_sleep)
        tracker.update(RateLimitRecord("core", 5000, 0, NOW + 100))

        with pytest.raises(Cancelled) as exc:
            executor.execute(get_user(executor), cancellation=CancellationToken())
        assert exc.value.message == "shutting down"
        assert connector.calls == []

    def test_cancelled_during_retry_backoff(self, make_executor, connector):
        def cancelling_sleep(seconds, token):
            token.cancel()
            token.raise_if_cancelled()

        executor = make_executor(sleeper=cancelling_sleep)
        connector.queue(make_response(503))

        with pytest.raises(Cancelled):
            executor.execute(get_user(executor), cancellation=CancellationToken())
        assert len(connector.calls) == 1

    def test_deadline_bounds_transport_timeout(self, executor, connector):
        connector.queue(make_response(200, {}))
        executor.execute(get_user(executor), cancellation=CancellationToken(timeout=10))
        assert 0 < connector.calls[0].timeout <= 10

    def test_cancelled_while_in_flight(self, executor, connector, clock):
        connector.queue(Cancelled("stop"))

        with pytest.raises(Cancelled, match="stop"):
            executor.execute(get_user(executor), cancellation=CancellationToken())
        assert len(connector.calls) == 1
        assert clock.sleeps == []
