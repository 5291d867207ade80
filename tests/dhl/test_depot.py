"""
Tests for the Depot.
"""

import logging
import os

import httpx
import pytest

from dhl import DeliveryMode, Depot, DhlConfig
from dhl.dhl_exceptions import (
    ArchiveError,
    FileTransferError,
    HttpTransferError,
    MissingLibraryFile,
    NetworkDisabledError,
    PackagesConsumedError,
    SharedClientError,
)
from dhl.package_models import FileSource, LinkMode, Package, Packages, UrlSource
from dhl.recipients import Recipients
from dhl_test_utils import archive_bytes, write_archive


def file_package(path, link=None, version=None):
    return Package(version=version, source=FileSource(path=path, link=link))


def url_package(url):
    return Package(source=UrlSource(url=url))


def mock_client_factory(handler):
    return lambda: httpx.Client(transport=httpx.MockTransport(handler))


class TestFileDelivery:
    """Tests for delivering archives from local files."""

    def test_verify_file_delivery(self, layout, announcer):
        """Test delivering three crates, with transitive libraries bundled."""
        dhltest_target = layout.placeholder("libdhltest-c000l0ff.rlib")
        dhltest_dash_target = layout.placeholder("libdhltest_dash-d15ea5e.rlib")
        dhltest_underscore_target = layout.placeholder("libdhltest_underscore-deadbeef.rlib")

        dep1_name, dep1_data = "libbytes-f6610c9d61c318a7.rlib", "test1"
        dep2_name, dep2_data = "libcfg_if-8132ccc150e6610a.rlib", "test2"
        dep3_name, dep3_data = "libbyteorder-568dc38c19e619e7.rlib", "test3"
        dep4_name, dep4_data = "libforeign_types-ace5d92fe2c77261.rlib", "test4"

        dhltest_source = write_archive(
            layout.private / "dhltest.tar.gz",
            [(dep1_name, dep1_data), (dep2_name, dep2_data), ("export.rlib", "test5")],
        )
        dhltest_dash_source = write_archive(
            layout.private / "libdhltest_dash.tar.gz",
            [(dep3_name, dep3_data), (dep4_name, dep4_data), ("export.rlib", "test6")],
        )
        dhltest_underscore_source = write_archive(
            layout.private / "libdhltest_underscore.v12.tar.gz",
            [("export.rlib", "test7")],
        )

        recipients = Recipients.with_env(layout.out, layout.base, announcer=announcer)
        packages = Packages(
            packages={
                "dhltest": file_package(dhltest_source),
                "dhltest-dash": file_package(dhltest_dash_source),
                "dhltest_underscore": file_package(dhltest_underscore_source),
            }
        )

        Depot().deliver(recipients, packages)

        assert (layout.deps / dep1_name).read_text() == dep1_data
        assert (layout.deps / dep2_name).read_text() == dep2_data
        assert (layout.deps / dep3_name).read_text() == dep3_data
        assert (layout.deps / dep4_name).read_text() == dep4_data
        assert dhltest_target.read_text() == "test5"
        assert dhltest_dash_target.read_text() == "test6"
        assert dhltest_underscore_target.read_text() == "test7"
        assert len(announcer.of("rerun-if-changed")) == 3

    def test_missing_library_file(self, layout, announcer):
        """Test that a crate without a placeholder aborts delivery."""
        good = layout.placeholder("libgood-1.rlib")
        later = layout.placeholder("liblater-1.rlib")
        source = write_archive(layout.private / "a.tar.gz", [("export.rlib", "new")])

        recipients = Recipients.with_env(layout.out, layout.base, announcer=announcer)
        packages = Packages(
            packages={
                "good": file_package(source),
                "ghost": file_package(source),
                "later": file_package(source),
            }
        )

        with pytest.raises(MissingLibraryFile) as excinfo:
            Depot().deliver(recipients, packages)

        assert excinfo.value.crate_name == "ghost"
        assert good.read_text() == "new"
        assert later.read_bytes() == b""
        assert sorted(p.name for p in layout.deps.iterdir()) == [
            "libgood-1.rlib",
            "liblater-1.rlib",
        ]

    def test_missing_source_file(self, layout):
        """Test that an unreadable source is a file transfer error."""
        destination = layout.placeholder("libfoo-1.rlib")
        recipients = Recipients.with_env(layout.out, layout.base)
        missing = layout.private / "missing.tar.gz"

        with pytest.raises(FileTransferError) as excinfo:
            Depot().deliver(recipients, Packages(packages={"foo": file_package(missing)}))

        assert excinfo.value.crate_name == "foo"
        assert excinfo.value.source == str(missing)
        assert excinfo.value.destination == str(destination)
        assert isinstance(excinfo.value.__cause__, FileNotFoundError)

    def test_corrupt_archive(self, layout):
        """Test that archive errors carry the crate name."""
        layout.placeholder("libfoo-1.rlib")
        source = layout.private / "foo.tar.gz"
        source.write_bytes(archive_bytes([("export.rlib", "x" * 2048)])[:40])
        recipients = Recipients.with_env(layout.out, layout.base)

        with pytest.raises(ArchiveError) as excinfo:
            Depot().deliver(recipients, Packages(packages={"foo": file_package(source)}))
        assert excinfo.value.crate_name == "foo"

    def test_delivery_logs_package_names(self, layout, caplog):
        """Test that the delivery start message lists the packages by name."""
        layout.placeholder("libbar-1.rlib")
        layout.placeholder("libfoo-1.rlib")
        source = write_archive(layout.private / "x.tar.gz", [("export.rlib", "x")])
        recipients = Recipients.with_env(layout.out, layout.base)
        packages = Packages(
            packages={"foo": file_package(source), "bar": file_package(source)}
        )

        with caplog.at_level(logging.INFO, logger="dhl"):
            Depot().deliver(recipients, packages)

        assert any(
            "Delivering 2 packages (unpack): bar, foo" in record.getMessage()
            for record in caplog.records
        )

    def test_packages_consumed_once(self, layout):
        """Test that delivered packages cannot be delivered again."""
        layout.placeholder("libfoo-1.rlib")
        source = write_archive(layout.private / "foo.tar.gz", [("export.rlib", "x")])
        recipients = Recipients.with_env(layout.out, layout.base)
        packages = Packages(packages={"foo": file_package(source)})

        depot = Depot()
        depot.deliver(recipients, packages)
        assert packages.drained

        with pytest.raises(PackagesConsumedError):
            depot.deliver(recipients, packages)

    def test_rescan_picks_up_delivery(self, layout):
        """Test that a new scan sees the delivered and bundled library files."""
        layout.placeholder("libfoo-aaa.rlib", mtime_ns=1_000_000_000_000)
        winner = layout.placeholder("libfoo-bbb.rlib", mtime_ns=2_000_000_000_000)
        source = write_archive(
            layout.private / "foo.tar.gz",
            [("deps/libbar-123.rlib", "bar"), ("export.rlib", "foo")],
        )

        recipients = Recipients.with_env(layout.out, layout.base)
        assert "bar" not in recipients
        Depot().deliver(recipients, Packages(packages={"foo": file_package(source)}))

        rescanned = Recipients.with_env(layout.out, layout.base)
        assert rescanned.get("foo") == winner
        assert winner.read_text() == "foo"
        assert rescanned.get("bar") == layout.deps / "libbar-123.rlib"


class TestRawDelivery:
    """Tests for the raw delivery mode."""

    @pytest.fixture
    def depot(self):
        return Depot(DhlConfig(delivery_mode=DeliveryMode.RAW))

    @pytest.fixture
    def source(self, layout):
        path = layout.private / "libfoo.rlib"
        path.write_bytes(b"prebuilt")
        return path

    def test_copy(self, depot, layout, source):
        """Test that a file without link mode is copied."""
        destination = layout.placeholder("libfoo-1.rlib")
        recipients = Recipients.with_env(layout.out, layout.base)

        depot.deliver(recipients, Packages(packages={"foo": file_package(source)}))

        assert destination.read_bytes() == b"prebuilt"
        assert not destination.is_symlink()
        assert os.stat(destination).st_ino != os.stat(source).st_ino

    def test_soft_link(self, depot, layout, source):
        """Test that a soft link mode symlinks the source."""
        destination = layout.placeholder("libfoo-1.rlib")
        recipients = Recipients.with_env(layout.out, layout.base)

        depot.deliver(
            recipients,
            Packages(packages={"foo": file_package(source, link=LinkMode.SOFT)}),
        )

        assert destination.is_symlink()
        assert destination.resolve() == source.resolve()

    def test_soft_link_relative_source(self, depot, layout, source, monkeypatch):
        """Test that a relative source path is linked so it resolves from deps."""
        monkeypatch.chdir(layout.base)
        destination = layout.placeholder("libfoo-1.rlib")
        recipients = Recipients.with_env(layout.out, layout.base)
        relative = source.relative_to(layout.base)

        depot.deliver(
            recipients,
            Packages(packages={"foo": file_package(relative, link=LinkMode.SOFT)}),
        )

        assert destination.is_symlink()
        assert os.path.isabs(os.readlink(destination))
        assert destination.read_bytes() == b"prebuilt"

    def test_hard_link(self, depot, layout, source):
        """Test that a hard link mode links the source."""
        destination = layout.placeholder("libfoo-1.rlib")
        recipients = Recipients.with_env(layout.out, layout.base)

        depot.deliver(
            recipients,
            Packages(packages={"foo": file_package(source, link=LinkMode.HARD)}),
        )

        assert not destination.is_symlink()
        assert os.stat(destination).st_ino == os.stat(source).st_ino

    @pytest.mark.parametrize("link", [None, LinkMode.SOFT, LinkMode.HARD])
    def test_missing_source_keeps_placeholder(self, depot, layout, link):
        """Test that a missing source fails without removing the placeholder."""
        destination = layout.placeholder("libfoo-1.rlib")
        recipients = Recipients.with_env(layout.out, layout.base)
        missing = layout.private / "missing.rlib"

        with pytest.raises(FileTransferError):
            depot.deliver(
                recipients, Packages(packages={"foo": file_package(missing, link=link)})
            )
        assert destination.exists()

    def test_raw_url(self, layout):
        """Test that a URL body is written verbatim in raw mode."""
        destination = layout.placeholder("libfoo-1.rlib")
        recipients = Recipients.with_env(layout.out, layout.base)

        def handler(request):
            return httpx.Response(200, content=b"rlib bytes")

        depot = Depot(
            DhlConfig(delivery_mode="raw"), client_factory=mock_client_factory(handler)
        )
        depot.deliver(
            recipients,
            Packages(packages={"foo": url_package("https://example.com/libfoo.rlib")}),
        )

        assert destination.read_bytes() == b"rlib bytes"


class TestUrlDelivery:
    """Tests for delivering archives from URLs."""

    def test_url_unpack(self, layout):
        """Test that a URL archive is unpacked onto the recipient."""
        destination = layout.placeholder("libfoo-1.rlib")
        recipients = Recipients.with_env(layout.out, layout.base)
        body = archive_bytes([("libdep-2.rlib", "dep"), ("export.rlib", "foo")])
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, content=body)

        with Depot(client_factory=mock_client_factory(handler)) as depot:
            depot.deliver(
                recipients,
                Packages(packages={"foo": url_package("https://example.com/foo.tar.gz")}),
            )

        assert len(requests) == 1
        assert requests[0].method == "GET"
        assert str(requests[0].url) == "https://example.com/foo.tar.gz"
        assert destination.read_text() == "foo"
        assert (layout.deps / "libdep-2.rlib").read_text() == "dep"

    def test_http_error_status(self, layout):
        """Test that an error status is a transfer error."""
        destination = layout.placeholder("libfoo-1.rlib")
        recipients = Recipients.with_env(layout.out, layout.base)

        def handler(request):
            return httpx.Response(404, content=b"not found")

        depot = Depot(client_factory=mock_client_factory(handler))
        with pytest.raises(HttpTransferError) as excinfo:
            depot.deliver(
                recipients,
                Packages(packages={"foo": url_package("https://example.com/foo.tar.gz")}),
            )

        assert excinfo.value.crate_name == "foo"
        assert excinfo.value.source == "https://example.com/foo.tar.gz"
        assert excinfo.value.destination == str(destination)
        assert isinstance(excinfo.value.__cause__, httpx.HTTPStatusError)

    def test_connection_error(self, layout):
        """Test that network failures are transfer errors."""
        layout.placeholder("libfoo-1.rlib")
        recipients = Recipients.with_env(layout.out, layout.base)

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        depot = Depot(client_factory=mock_client_factory(handler))
        with pytest.raises(HttpTransferError):
            depot.deliver(
                recipients,
                Packages(packages={"foo": url_package("https://example.com/foo.tar.gz")}),
            )

    def test_shared_client_error(self, layout):
        """Test that a client construction failure is built once and shared."""
        layout.placeholder("libfoo-1.rlib")
        layout.placeholder("libbar-1.rlib")
        calls = []
        failure = RuntimeError("no TLS backend")

        def factory():
            calls.append(1)
            raise failure

        depot = Depot(client_factory=factory)
        errors = []
        for name in ("foo", "bar"):
            recipients = Recipients.with_env(layout.out, layout.base)
            with pytest.raises(SharedClientError) as excinfo:
                depot.deliver(
                    recipients,
                    Packages(packages={name: url_package("https://example.com/x.tar.gz")}),
                )
            errors.append(excinfo.value)

        assert len(calls) == 1
        assert [e.crate_name for e in errors] == ["foo", "bar"]
        assert errors[0].__cause__ is failure
        assert errors[1].__cause__ is failure
        assert errors[1].shared_cause is failure

    def test_file_sources_ignore_client_error(self, layout):
        """Test that file sources never construct the client."""
        destination = layout.placeholder("libfoo-1.rlib")
        source = write_archive(layout.private / "foo.tar.gz", [("export.rlib", "ok")])

        def factory():
            raise AssertionError("client should not be built")

        depot = Depot(client_factory=factory)
        depot.deliver(
            Recipients.with_env(layout.out, layout.base),
            Packages(packages={"foo": file_package(source)}),
        )
        assert destination.read_text() == "ok"

    def test_network_disabled(self, layout):
        """Test that URL sources fail when network is disabled."""
        layout.placeholder("libfoo-1.rlib")

        def factory():
            raise AssertionError("client should not be built")

        depot = Depot(DhlConfig(allow_network=False), client_factory=factory)
        with pytest.raises(NetworkDisabledError) as excinfo:
            depot.deliver(
                Recipients.with_env(layout.out, layout.base),
                Packages(packages={"foo": url_package("https://example.com/x.tar.gz")}),
            )
        assert excinfo.value.crate_name == "foo"
