import asyncio
import time
import unittest
from unittest.mock import Mock, patch

from healthchecks.checks.http_check import ProbeTimeoutError, TransportError
from healthchecks.checks.outcome import Reason, classify
from healthchecks.checks.resolver import LoopbackTarget
from healthchecks.checks.results import HttpResponse
from healthchecks.registry import parse_checks
from healthchecks.runner import (
    USER_AGENT,
    HealthcheckRunner,
    build_on_failure,
    partition_outcomes,
    status_code_from_outcomes,
)

TARGET = LoopbackTarget("http", "127.0.0.1", 5000)


def _fake_run_http(routes: dict, seen: list | None = None):
    async def fake(url, *, headers, resolver, timeout_s, executor=None, redirects=0):
        if seen is not None:
            seen.append((url, dict(headers), resolver(url).url))
        result = routes[url]
        if callable(result):
            result = await result()
        if isinstance(result, BaseException):
            raise result
        return result

    return fake


class StatusCodeTests(unittest.TestCase):
    def test_status_code_from_outcomes(self) -> None:
        ok = classify("/a", [], 0.01, response=HttpResponse(200))
        bad = classify("/b", [], 0.01, response=HttpResponse(500))

        self.assertEqual(status_code_from_outcomes([ok], []), 200)
        self.assertEqual(status_code_from_outcomes([ok], [bad]), 500)
        self.assertEqual(status_code_from_outcomes([], [bad]), 500)
        self.assertEqual(status_code_from_outcomes([], []), 404)

    def test_partition_sorts_by_url(self) -> None:
        outcomes = [
            classify("/zeta", [], 0.01, response=HttpResponse(200)),
            classify("/beta", [], 0.01, response=HttpResponse(503)),
            classify("/alpha", [], 0.01, response=HttpResponse(200)),
            classify("/Alpha", [], 0.01, error=TransportError("refused")),
        ]

        report = partition_outcomes(outcomes)

        self.assertEqual([o.url for o in report.passed], ["/alpha", "/zeta"])
        self.assertEqual([o.url for o in report.failed], ["/Alpha", "/beta"])
        self.assertEqual(report.status_code, 500)


class HealthcheckRunnerTests(unittest.IsolatedAsyncioTestCase):
    def _runner(self, text: str, **kwargs) -> HealthcheckRunner:
        runner = HealthcheckRunner(parse_checks(text), **kwargs)
        return runner

    async def test_matching_body_passes(self) -> None:
        runner = self._runner("/status 200 OK\n")
        routes = {"/status": HttpResponse(200, {}, "<p>200 OK</p>")}

        with patch("healthchecks.runner.run_http", new=_fake_run_http(routes)):
            report = await runner.run(TARGET)

        self.assertEqual(report.status_code, 200)
        self.assertEqual(len(report.passed), 1)
        self.assertIs(report.passed[0].reason, Reason.NONE)

    async def test_bad_status_fails(self) -> None:
        runner = self._runner("/status\n")
        routes = {"/status": HttpResponse(503, {}, "down")}

        with patch("healthchecks.runner.run_http", new=_fake_run_http(routes)):
            report = await runner.run(TARGET)

        self.assertEqual(report.status_code, 500)
        self.assertIs(report.failed[0].reason, Reason.STATUS_CODE)
        self.assertEqual(report.failed[0].status_code, 503)

    async def test_no_checks_is_404(self) -> None:
        runner = self._runner("")

        report = await runner.run(TARGET)

        self.assertEqual(report.status_code, 404)
        self.assertEqual(report.passed, ())
        self.assertEqual(report.failed, ())

    async def test_failure_dominates(self) -> None:
        runner = self._runner("/ok\n/broken\n")
        routes = {
            "/ok": HttpResponse(200, {}, ""),
            "/broken": TransportError("ConnectionError: refused"),
        }

        with patch("healthchecks.runner.run_http", new=_fake_run_http(routes)):
            report = await runner.run(TARGET)

        self.assertEqual(report.status_code, 500)
        self.assertEqual([o.url for o in report.passed], ["/ok"])
        self.assertEqual([o.url for o in report.failed], ["/broken"])
        self.assertIs(report.failed[0].reason, Reason.ERROR)

    async def test_every_check_lands_in_exactly_one_partition(self) -> None:
        runner = self._runner("/a\n/b x\n/c\n/d\n/e\n")
        routes = {
            "/a": HttpResponse(200, {}, ""),
            "/b": HttpResponse(200, {}, "nope"),
            "/c": ProbeTimeoutError("slow"),
            "/d": RuntimeError("unexpected"),
            "/e": HttpResponse(404, {}, ""),
        }

        with patch("healthchecks.runner.run_http", new=_fake_run_http(routes)):
            report = await runner.run(TARGET)

        passed = {o.url for o in report.passed}
        failed = {o.url for o in report.failed}
        self.assertFalse(passed & failed)
        self.assertEqual(passed | failed, {"/a", "/b", "/c", "/d", "/e"})
        reasons = {o.url: o.reason for o in report.failed}
        self.assertEqual(
            reasons,
            {"/b": Reason.BODY, "/c": Reason.TIMEOUT, "/d": Reason.ERROR, "/e": Reason.STATUS_CODE},
        )

    async def test_same_checks_give_same_partitions(self) -> None:
        runner = self._runner("/a\n/b\n")
        routes = {"/a": HttpResponse(200, {}, ""), "/b": HttpResponse(500, {}, "")}

        with patch("healthchecks.runner.run_http", new=_fake_run_http(routes)):
            first = await runner.run(TARGET)
            second = await runner.run(TARGET)

        self.assertEqual([o.url for o in first.passed], [o.url for o in second.passed])
        self.assertEqual([o.url for o in first.failed], [o.url for o in second.failed])
        self.assertEqual(first.status_code, second.status_code)

    async def test_checks_run_concurrently(self) -> None:
        runner = self._runner("/one\n/two\n/three\n")

        async def slow():
            await asyncio.sleep(0.2)
            return HttpResponse(200, {}, "")

        routes = {"/one": slow, "/two": slow, "/three": slow}

        start = time.perf_counter()
        with patch("healthchecks.runner.run_http", new=_fake_run_http(routes)):
            report = await runner.run(TARGET)
        elapsed = time.perf_counter() - start

        self.assertEqual(len(report.passed), 3)
        self.assertLess(elapsed, 0.5)

    async def test_probe_headers_and_loopback_target(self) -> None:
        runner = self._runner("/status\n//www.example.com/\n")
        seen: list = []
        routes = {
            "/status": HttpResponse(200, {}, ""),
            "//www.example.com/": HttpResponse(200, {}, ""),
        }

        with patch("healthchecks.runner.run_http", new=_fake_run_http(routes, seen)):
            await runner.run(TARGET, request_id="abc-123")

        for url, headers, loopback_url in seen:
            self.assertEqual(headers, {"User-Agent": USER_AGENT, "X-Request-Id": "abc-123"})
            self.assertTrue(loopback_url.startswith("http://127.0.0.1:5000/"))

    async def test_missing_request_id_sends_empty_header(self) -> None:
        runner = self._runner("/status\n")
        seen: list = []
        routes = {"/status": HttpResponse(200, {}, "")}

        with patch("healthchecks.runner.run_http", new=_fake_run_http(routes, seen)):
            await runner.run(TARGET)

        self.assertEqual(seen[0][1]["X-Request-Id"], "")

    async def test_outcome_keeps_original_url_and_expected(self) -> None:
        runner = self._runner("/redirect 200 OK\n")
        routes = {"/redirect": HttpResponse(200, {}, "200 OK")}

        with patch("healthchecks.runner.run_http", new=_fake_run_http(routes)):
            report = await runner.run(TARGET)

        self.assertEqual(report.passed[0].url, "/redirect")
        self.assertEqual(report.passed[0].expected, ("200 OK",))


class NotifyTests(unittest.TestCase):
    def _report(self, failed: bool):
        outcomes = [classify("/a", [], 0.01, response=HttpResponse(200))]
        if failed:
            outcomes.append(classify("/b", [], 0.01, response=HttpResponse(503)))
        return partition_outcomes(outcomes)

    def test_callback_receives_failed_outcomes_and_request_id(self) -> None:
        callback = Mock()
        runner = HealthcheckRunner(parse_checks(""), on_failure=callback)
        report = self._report(failed=True)

        runner.notify(report, "req-9")

        callback.assert_called_once_with(report.failed, "req-9")

    def test_callback_not_called_when_all_pass(self) -> None:
        callback = Mock()
        runner = HealthcheckRunner(parse_checks(""), on_failure=callback)

        runner.notify(self._report(failed=False))

        callback.assert_not_called()

    def test_callback_errors_are_swallowed(self) -> None:
        callback = Mock(side_effect=RuntimeError("ntfy down"))
        runner = HealthcheckRunner(parse_checks(""), on_failure=callback)

        with self.assertLogs("healthchecks.runner", level="WARNING"):
            runner.notify(self._report(failed=True))

        callback.assert_called_once()

    def test_build_on_failure_requires_ntfy_settings(self) -> None:
        with patch("healthchecks.runner.settings") as settings:
            settings.NTFY_URL = None
            settings.NTFY_TOPIC = "ops"
            self.assertIsNone(build_on_failure())

    def test_build_on_failure_posts_to_ntfy(self) -> None:
        with patch("healthchecks.runner.settings") as settings, patch(
            "healthchecks.runner.NtfyNotifier"
        ) as notifier_cls:
            settings.NTFY_URL = "http://ntfy.local"
            settings.NTFY_TOPIC = "ops"
            on_failure = build_on_failure()
            report = self._report(failed=True)
            on_failure(report.failed, "req-1")

        notifier_cls.return_value.send_failed.assert_called_once()
        kwargs = notifier_cls.return_value.send_failed.call_args.kwargs
        self.assertEqual(kwargs["title"], "[FAILED] 1 healthcheck")
        self.assertIn("/b => 503", kwargs["message"])


if __name__ == "__main__":
    unittest.main()
