from __future__ import annotations

from typing import Any, Mapping, Protocol

from apify_client import ApifyClient
from apify_client.errors import ApifyApiError

from .errors import FetchError
from .fetch_retry import OnRetryFn, RetryPolicy, SleepFn, call_with_retries


class TimelineFetcher(Protocol):
    def fetch_recent_posts(self, count: int) -> list[dict[str, Any]]: ...


class ApifyTimelineFetcher:
    """
    Fetch timeline items by running an Apify Actor and reading its dataset.

    The Actor owns authentication and pagination; it is expected to emit one
    raw timeline item per dataset record.
    """

    def __init__(
        self,
        token: str,
        *,
        actor_id: str,
        extra_input: Mapping[str, Any] | None = None,
        client: ApifyClient | None = None,
        retry: RetryPolicy | None = None,
        on_retry: OnRetryFn | None = None,
        sleep_fn: SleepFn | None = None,
        timeout_secs: int | None = None,
    ) -> None:
        self._actor_id = (actor_id or "").strip()
        if not self._actor_id:
            raise FetchError("actor_id must be a non-empty string")

        self._extra_input = dict(extra_input or {})
        self._retry = retry or RetryPolicy()
        self._on_retry = on_retry
        self._sleep_fn = sleep_fn
        self._timeout_secs = timeout_secs
        # Client-level retries are disabled; RetryPolicy applies instead.
        self._client = client if client is not None else ApifyClient(token=token, max_retries=0)

    def fetch_recent_posts(self, count: int) -> list[dict[str, Any]]:
        if int(count) <= 0:
            raise FetchError("count must be positive")

        run_input: dict[str, Any] = {**self._extra_input, "count": int(count)}

        def _do_call() -> Any:
            return self._client.actor(self._actor_id).call(
                run_input=run_input,
                timeout_secs=self._timeout_secs,
            )

        try:
            run = call_with_retries(
                _do_call,
                policy=self._retry,
                operation=f"apify.actor.call:{self._actor_id}",
                on_retry=self._on_retry,
                sleep_fn=self._sleep_fn,
            )
        except ApifyApiError as e:
            raise FetchError(f"Timeline Actor call failed ({self._actor_id}): {e}") from e
        except Exception as e:
            raise FetchError(
                f"Unexpected error while calling timeline Actor ({self._actor_id}): {e}"
            ) from e

        if run is None:
            raise FetchError(f"Timeline Actor run failed ({self._actor_id})")

        dataset_id = (run.get("defaultDatasetId") or "").strip()
        if not dataset_id:
            raise FetchError(f"Timeline Actor run response missing default dataset id: {run}")

        def _do_fetch() -> list[dict[str, Any]]:
            return list(self._client.dataset(dataset_id).iterate_items(limit=int(count)))

        try:
            return call_with_retries(
                _do_fetch,
                policy=self._retry,
                operation=f"apify.dataset.iterate_items:{dataset_id}",
                on_retry=self._on_retry,
                sleep_fn=self._sleep_fn,
            )
        except ApifyApiError as e:
            raise FetchError(f"Failed to read timeline dataset ({dataset_id}): {e}") from e
        except Exception as e:
            raise FetchError(f"Unexpected error while reading dataset ({dataset_id}): {e}") from e
