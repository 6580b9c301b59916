"""
Tests for installing the request interceptor over host primitives.
"""

import asyncio
import json
import logging
from unittest.mock import Mock

import httpx
import pytest

from miniroute.client.interceptor import PATCH_MARKER, RequestInterceptor, lock_attributes
from miniroute.core.errors import ErrorCode, ImageDownloadError

from tests.fixtures import FakeHost, LAN_BASE_URL, student_profile_payload


class TestInstall:
    def test_end_to_end_dispatch_url(self, interceptor, fake_host):
        assert interceptor.install(fake_host) is True

        fake_host.request({"url": "xuesheng/login", "method": "POST"})

        assert fake_host.last_url == "http://192.168.1.10:8080/app/xuesheng/login"
        assert fake_host.calls[-1]["method"] == "POST"

    def test_keyword_options(self, interceptor, fake_host):
        interceptor.install(fake_host)
        fake_host.download_file(url="upload/a.jpg")
        assert fake_host.last_url == "http://192.168.1.10:8080/app/upload/a.jpg"

    def test_per_call_base_url(self, interceptor, fake_host):
        interceptor.install(fake_host)
        fake_host.upload_file({"url": "files", "baseUrl": "http://localhost:9000/oss/"})
        assert fake_host.last_url == "http://192.168.1.10:8080/oss/files"

    def test_second_install_is_a_no_op(self, interceptor, fake_host):
        interceptor.install(fake_host)
        wrapped = fake_host.request

        assert interceptor.install(fake_host) is False
        assert fake_host.request is wrapped

        fake_host.request({"url": "ping"})
        assert len(fake_host.calls) == 1

    def test_second_interceptor_sees_marker(self, interceptor, testing_environment, fake_host):
        interceptor.install(fake_host)
        wrapped = fake_host.request

        other = RequestInterceptor(testing_environment)
        assert other.install(fake_host) is False
        assert fake_host.request is wrapped
        assert getattr(fake_host, PATCH_MARKER) is True

    def test_patched_primitives_locked(self, interceptor, fake_host):
        interceptor.install(fake_host)

        with pytest.raises(AttributeError):
            fake_host.request = Mock()
        with pytest.raises(AttributeError):
            del fake_host.upload_file
        with pytest.raises(AttributeError):
            setattr(fake_host, PATCH_MARKER, False)

        fake_host.response = {"statusCode": 500}
        assert isinstance(fake_host, FakeHost)

    def test_one_failing_primitive_does_not_stop_the_others(self, interceptor, caplog):
        class PartialHost(FakeHost):
            def __setattr__(self, name, value):
                if name == "upload_file":
                    raise TypeError("read-only primitive")
                super().__setattr__(name, value)

        host = PartialHost()
        with caplog.at_level(logging.ERROR, logger="miniroute"):
            assert interceptor.install(host) is True

        assert interceptor.patched_primitives == ["request", "download_file"]
        assert ErrorCode.INSTALL_FAILED.tag() in caplog.text

        host.request({"url": "a"})
        host.upload_file({"url": "b"})
        assert host.calls[0]["url"] == "http://192.168.1.10:8080/app/a"
        assert host.calls[1]["url"] == "b"

    def test_missing_primitives_skipped(self, interceptor):
        class RequestOnlyHost:
            def __init__(self):
                self.seen = []

            def request(self, options):
                self.seen.append(options["url"])

        host = RequestOnlyHost()
        assert interceptor.install(host) is True
        host.request({"url": "x"})
        assert host.seen == ["http://192.168.1.10:8080/app/x"]
        assert interceptor.patched_primitives == ["request"]

    def test_placeholder_url_logged(self, override_store, device_signals, caplog):
        from miniroute.core.resolver import EnvironmentManager

        manager = EnvironmentManager(store=override_store, signals=device_signals)
        host = FakeHost()
        RequestInterceptor(manager).install(host)

        with caplog.at_level(logging.ERROR, logger="miniroute"):
            host.request({"url": "ping"})

        assert host.last_url == "http://YOUR_LOCAL_IP:8080/app/ping"
        assert ErrorCode.PLACEHOLDER_BASE_URL.tag() in caplog.text

    def test_empty_url_on_empty_base_not_reported_as_placeholder(self, fake_host, caplog):
        interceptor = RequestInterceptor(Mock(get_base_url=Mock(return_value="")))
        interceptor.install(fake_host)

        with caplog.at_level(logging.ERROR, logger="miniroute"):
            fake_host.request({"url": ""})

        assert fake_host.last_url == ""
        assert ErrorCode.PLACEHOLDER_BASE_URL.tag() not in caplog.text

    def test_environment_change_applies_immediately(self, interceptor, testing_environment, fake_host):
        interceptor.install(fake_host)
        testing_environment.set_environment_base_url("testing", "10.0.0.9:8080/app")
        fake_host.request({"url": "ping"})
        assert fake_host.last_url == "http://10.0.0.9:8080/app/ping"

    def test_set_production(self, interceptor, testing_environment, fake_host):
        testing_environment.set_environment_base_url("production", "https://api.example.com/app/")
        interceptor.install(fake_host)
        interceptor.set_production(True)
        fake_host.request({"url": "ping"})
        assert fake_host.last_url == "https://api.example.com/app/ping"


class TestResponseRewrite:
    def test_success_payload_rewritten(self, interceptor):
        host = FakeHost(response={"statusCode": 200, "data": student_profile_payload()})
        interceptor.install(host)
        received = []

        host.request({"url": "xuesheng/login", "success": received.append})

        data = received[0]["data"]["data"]
        assert data["touxiang"] == "http://192.168.1.10:8080/app/upload/avatar_7.png"
        assert data["images"].startswith("http://192.168.1.10:8080/app/upload/1.jpg,")

    def test_upload_text_body_rewritten(self, interceptor):
        body = json.dumps({"url": "upload/new.png", "msg": "ok"})
        host = FakeHost(response={"statusCode": 200, "data": body})
        interceptor.install(host)
        received = []

        host.upload_file({"url": "file/upload", "success": received.append})

        assert json.loads(received[0]["data"]) == {
            "url": "http://192.168.1.10:8080/app/upload/new.png",
            "msg": "ok",
        }

    def test_plain_text_body_untouched(self, interceptor):
        host = FakeHost(response={"statusCode": 200, "data": "OK"})
        interceptor.install(host)
        received = []
        host.upload_file({"url": "file/upload", "success": received.append})
        assert received[0]["data"] == "OK"

    def test_rewrite_failure_still_delivers(self, testing_environment, caplog):
        rewriter = Mock()
        rewriter.rewrite.side_effect = RuntimeError("boom")
        interceptor = RequestInterceptor(testing_environment, rewriter=rewriter)
        response = {"statusCode": 200, "data": {"avatar": "a.jpg"}}
        host = FakeHost(response=response)
        interceptor.install(host)
        received = []

        with caplog.at_level(logging.WARNING, logger="miniroute"):
            host.request({"url": "me", "success": received.append})

        assert received == [{"statusCode": 200, "data": {"avatar": "a.jpg"}}]
        assert ErrorCode.REWRITE_FAILED.tag() in caplog.text

    def test_primitive_result_returned(self, interceptor, fake_host):
        interceptor.install(fake_host)
        assert fake_host.request({"url": "ping"}) == {
            "kind": "request",
            "url": "http://192.168.1.10:8080/app/ping",
        }


class TestImageHelpers:
    def test_get_image_url(self, interceptor):
        assert interceptor.get_image_url("upload/a.jpg") == "http://192.168.1.10:8080/app/upload/a.jpg"
        assert interceptor.get_image_url("http://localhost:8080/app/b.png") == "http://192.168.1.10:8080/app/b.png"
        assert interceptor.get_image_url("https://cdn.example.com/c.png") == "https://cdn.example.com/c.png"
        assert interceptor.get_image_url("") == ""
        assert interceptor.get_image_url(None) == ""

    def test_get_image_urls(self, interceptor):
        assert interceptor.get_image_urls("a.jpg, b.jpg,") == [
            "http://192.168.1.10:8080/app/a.jpg",
            "http://192.168.1.10:8080/app/b.jpg",
        ]
        assert interceptor.get_image_urls(["c.jpg"]) == ["http://192.168.1.10:8080/app/c.jpg"]
        assert interceptor.get_image_urls(None) == []

    def test_get_image_urls_drops_blank_and_non_string_items(self, interceptor):
        assert interceptor.get_image_urls(["a.jpg", None, "  ", 3]) == ["http://192.168.1.10:8080/app/a.jpg"]
        assert interceptor.get_image_urls(" , ") == []

    def test_need_image_download(self, interceptor):
        assert interceptor.need_image_download() is True
        secure = RequestInterceptor(Mock(get_base_url=Mock(return_value="https://api.example.com/app/")))
        assert secure.need_image_download() is False


class TestImageDownload:
    def test_http_image_goes_through_download_file(self, interceptor):
        host = FakeHost(response={"statusCode": 200, "tempFilePath": "wxfile://tmp/a.jpg"})
        interceptor.install(host)

        path = asyncio.run(interceptor.download_image("upload/a.jpg"))

        assert path == "wxfile://tmp/a.jpg"
        assert host.calls[-1]["kind"] == "download_file"
        assert host.last_url == "http://192.168.1.10:8080/app/upload/a.jpg"

    def test_https_image_returned_as_is(self, interceptor, fake_host):
        interceptor.install(fake_host)
        url = "https://cdn.example.com/a.jpg"
        assert asyncio.run(interceptor.download_image(url)) == url
        assert fake_host.calls == []

    def test_load_images_keeps_order(self, interceptor):
        host = FakeHost(response={"statusCode": 200, "tempFilePath": "wxfile://tmp/a.jpg"})
        interceptor.install(host)

        paths = asyncio.run(interceptor.load_images("upload/a.jpg, https://cdn.example.com/b.jpg"))

        assert paths == ["wxfile://tmp/a.jpg", "https://cdn.example.com/b.jpg"]
        assert len(host.calls) == 1

    def test_non_200_status_raises(self, interceptor):
        interceptor.install(FakeHost(response={"statusCode": 404}))
        with pytest.raises(ImageDownloadError) as exc_info:
            asyncio.run(interceptor.download_image("upload/missing.jpg"))
        assert exc_info.value.code == ErrorCode.DOWNLOAD_FAILED
        assert exc_info.value.details["status"] == 404

    def test_fail_callback_raises(self, interceptor):
        interceptor.install(FakeHost(error={"errMsg": "downloadFile:fail"}))
        with pytest.raises(ImageDownloadError, match="downloadFile:fail"):
            asyncio.run(interceptor.download_image("upload/a.jpg"))

    def test_without_installed_host(self, interceptor):
        with pytest.raises(ImageDownloadError) as exc_info:
            asyncio.run(interceptor.download_image("upload/a.jpg"))
        assert exc_info.value.code == ErrorCode.HOST_NOT_INSTALLED

    def test_empty_path(self, interceptor, fake_host):
        interceptor.install(fake_host)
        with pytest.raises(ImageDownloadError):
            asyncio.run(interceptor.download_image(""))


class TestHttpClientRegistration:
    def test_register_is_idempotent(self, interceptor):
        client = httpx.Client()
        try:
            assert interceptor.register_http_client(client) is True
            assert interceptor.register_http_client(client) is False
            assert str(client.base_url) == LAN_BASE_URL
            assert len(client.event_hooks["request"]) == 1
        finally:
            client.close()

    def test_install_registers_client(self, interceptor, fake_host):
        client = httpx.Client()
        try:
            interceptor.install(fake_host, http_client=client)
            assert str(client.base_url) == LAN_BASE_URL
        finally:
            client.close()

    def test_wait_for_http_client_polls(self, interceptor):
        client = httpx.Client()
        lookups = iter([None, None, client])
        try:
            registered = asyncio.run(interceptor.wait_for_http_client(lambda: next(lookups), attempts=5, interval=0))
            assert registered is True
            assert str(client.base_url) == LAN_BASE_URL
        finally:
            client.close()

    def test_wait_for_http_client_gives_up(self, interceptor):
        calls = []

        def lookup():
            calls.append(1)
            return None

        assert asyncio.run(interceptor.wait_for_http_client(lookup, attempts=3, interval=0)) is False
        assert len(calls) == 3

    def test_wait_for_http_client_survives_lookup_errors(self, interceptor):
        client = httpx.Client()

        def lookup():
            if not hasattr(lookup, "called"):
                lookup.called = True
                raise RuntimeError("app not ready")
            return client

        try:
            assert asyncio.run(interceptor.wait_for_http_client(lookup, attempts=2, interval=0)) is True
        finally:
            client.close()


def test_lock_attributes_rejects_builtin():
    with pytest.raises(TypeError):
        lock_attributes(object(), ["x"])
