# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Tests for the coordination session and state managers."""

import base64
import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from schedctl.core import keys
from schedctl.core.errors import CoordinationError
from schedctl.core.statemgr import CoordinationSession, SchedulerLocation, scheduler_location_key
from schedctl.statemgrs import EtcdStateManager, InMemoryStateManager, LocalFileSystemStateManager


class TestSchedulerLocation:
    """Tests for the location record."""

    def test_json_round_trip(self):
        """A location survives serialization."""
        location = SchedulerLocation(topology_name="wordcount", http_endpoint="host1:9000")
        assert SchedulerLocation.from_json(location.to_json()) == location

    def test_json_is_stable(self):
        """Serialized keys are sorted."""
        location = SchedulerLocation(topology_name="wordcount", http_endpoint="host1:9000")
        assert location.to_json() == '{"http_endpoint": "host1:9000", "topology_name": "wordcount"}'

    @pytest.mark.parametrize("data", ["not json", '{"topology_name": "wordcount"}'])
    def test_malformed(self, data):
        """Malformed records raise CoordinationError."""
        with pytest.raises(CoordinationError, match="Malformed"):
            SchedulerLocation.from_json(data)

    def test_key(self):
        """Locations live under <root>/schedulers/<name>."""
        assert scheduler_location_key("/state/", "wordcount") == "/state/schedulers/wordcount"


class TestCoordinationSession:
    """Tests for CoordinationSession."""

    def test_register_and_get(self):
        """A registered location can be read back."""
        session = CoordinationSession(InMemoryStateManager())
        session.open({})
        location = SchedulerLocation("wordcount", "host1:9000")

        session.register_location(location)

        assert session.get_location("wordcount") == location
        assert session.get_location("other") is None

    def test_register_overwrites(self):
        """A second registration replaces the first."""
        session = CoordinationSession(InMemoryStateManager())
        session.open({})

        session.register_location(SchedulerLocation("wordcount", "host1:9000"))
        session.register_location(SchedulerLocation("wordcount", "host2:9001"))

        assert session.get_location("wordcount").http_endpoint == "host2:9001"

    def test_requires_open(self):
        """Operations before open() fail."""
        session = CoordinationSession(InMemoryStateManager())
        with pytest.raises(CoordinationError, match="not open"):
            session.register_location(SchedulerLocation("wordcount", "host1:9000"))

    def test_close_idempotent(self):
        """close() releases the state manager exactly once."""
        manager = MagicMock(spec=InMemoryStateManager)
        session = CoordinationSession(manager)
        session.open({})

        session.close()
        session.close()

        manager.close.assert_called_once()
        assert session.is_open is False

    def test_close_without_open(self):
        """close() on a never-opened session does nothing."""
        manager = MagicMock(spec=InMemoryStateManager)
        CoordinationSession(manager).close()
        manager.close.assert_not_called()

    def test_failed_open_still_closes(self):
        """A state manager whose initialize failed is still closed."""
        manager = MagicMock(spec=InMemoryStateManager)
        manager.initialize.side_effect = RuntimeError("connection refused")
        session = CoordinationSession(manager)

        with pytest.raises(CoordinationError, match="connection refused"):
            session.open({})
        session.close()

        manager.close.assert_called_once()

    def test_write_failure_translated(self):
        """Foreign write errors become CoordinationError."""
        manager = MagicMock(spec=InMemoryStateManager)
        manager.set_scheduler_location.side_effect = OSError("disk full")
        session = CoordinationSession(manager)
        session.open({})

        with pytest.raises(CoordinationError, match="disk full"):
            session.register_location(SchedulerLocation("wordcount", "host1:9000"))


class TestLocalFileSystemStateManager:
    """Tests for the localfs state manager."""

    def test_write_and_read(self, tmp_path):
        """Locations are stored as JSON files under the root."""
        manager = LocalFileSystemStateManager()
        manager.initialize({keys.STATEMGR_ROOT_PATH: str(tmp_path / "state")})
        location = SchedulerLocation("wordcount", "host1:9000")

        manager.set_scheduler_location(location, "wordcount")

        path = tmp_path / "state" / "schedulers" / "wordcount"
        assert json.loads(path.read_text()) == {"topology_name": "wordcount", "http_endpoint": "host1:9000"}
        assert manager.get_scheduler_location("wordcount") == location

    def test_overwrite(self, tmp_path):
        """Writing again replaces the record and leaves no temp files."""
        manager = LocalFileSystemStateManager()
        manager.initialize({keys.STATEMGR_ROOT_PATH: str(tmp_path)})

        manager.set_scheduler_location(SchedulerLocation("wordcount", "host1:9000"), "wordcount")
        manager.set_scheduler_location(SchedulerLocation("wordcount", "host2:9001"), "wordcount")

        assert manager.get_scheduler_location("wordcount").http_endpoint == "host2:9001"
        assert [p.name for p in (tmp_path / "schedulers").iterdir()] == ["wordcount"]

    def test_missing_record(self, tmp_path):
        """Reading an unregistered topology gives None."""
        manager = LocalFileSystemStateManager()
        manager.initialize({keys.STATEMGR_ROOT_PATH: str(tmp_path)})
        assert manager.get_scheduler_location("wordcount") is None

    def test_shared_between_instances(self, tmp_path):
        """Separate managers on the same root see each other's records."""
        writer = LocalFileSystemStateManager()
        reader = LocalFileSystemStateManager()
        writer.initialize({keys.STATEMGR_ROOT_PATH: str(tmp_path)})
        reader.initialize({keys.STATEMGR_ROOT_PATH: str(tmp_path)})

        writer.set_scheduler_location(SchedulerLocation("wordcount", "host1:9000"), "wordcount")

        assert reader.get_scheduler_location("wordcount").http_endpoint == "host1:9000"

    def test_use_after_close(self, tmp_path):
        """A closed manager refuses operations."""
        manager = LocalFileSystemStateManager()
        manager.initialize({keys.STATEMGR_ROOT_PATH: str(tmp_path)})
        manager.close()

        with pytest.raises(CoordinationError, match="not initialized"):
            manager.get_scheduler_location("wordcount")


def _b64(value: str) -> str:
    return base64.b64encode(value.encode()).decode()


ETCD_CONFIG = {
    keys.STATEMGR_CONNECTION_STRING: "http://etcd:2379/",
    keys.STATEMGR_ROOT_PATH: "/schedctl",
    keys.STATEMGR_REQUEST_TIMEOUT: 2.0,
}


class TestEtcdStateManager:
    """Tests for the etcd state manager with a mocked HTTP session."""

    @patch("schedctl.statemgrs.etcd.requests.Session")
    def test_initialize_checks_health(self, mock_session_cls):
        """initialize() probes /health."""
        session = mock_session_cls.return_value
        session.get.return_value.status_code = 200

        manager = EtcdStateManager()
        manager.initialize(ETCD_CONFIG)

        session.get.assert_called_once_with("http://etcd:2379/health", timeout=2.0)

    @patch("schedctl.statemgrs.etcd.requests.Session")
    def test_initialize_unreachable(self, mock_session_cls):
        """An unreachable etcd raises CoordinationError."""
        mock_session_cls.return_value.get.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(CoordinationError, match="Cannot reach etcd"):
            EtcdStateManager().initialize(ETCD_CONFIG)

    @patch("schedctl.statemgrs.etcd.requests.Session")
    def test_initialize_unhealthy(self, mock_session_cls):
        """A non-200 health check raises CoordinationError."""
        mock_session_cls.return_value.get.return_value.status_code = 503

        with pytest.raises(CoordinationError, match="unhealthy"):
            EtcdStateManager().initialize(ETCD_CONFIG)

    @patch("schedctl.statemgrs.etcd.requests.Session")
    def test_put_location(self, mock_session_cls):
        """Locations are written with base64 key and value."""
        session = mock_session_cls.return_value
        session.get.return_value.status_code = 200
        session.post.return_value.json.return_value = {}
        location = SchedulerLocation("wordcount", "host1:9000")

        manager = EtcdStateManager()
        manager.initialize(ETCD_CONFIG)
        manager.set_scheduler_location(location, "wordcount")

        session.post.assert_called_once_with(
            "http://etcd:2379/v3/kv/put",
            json={"key": _b64("/schedctl/schedulers/wordcount"), "value": _b64(location.to_json())},
            timeout=2.0,
        )

    @patch("schedctl.statemgrs.etcd.requests.Session")
    def test_get_location(self, mock_session_cls):
        """A range response is decoded into a location."""
        session = mock_session_cls.return_value
        session.get.return_value.status_code = 200
        location = SchedulerLocation("wordcount", "host1:9000")
        session.post.return_value.json.return_value = {
            "kvs": [{"key": _b64("/schedctl/schedulers/wordcount"), "value": _b64(location.to_json())}]
        }

        manager = EtcdStateManager()
        manager.initialize(ETCD_CONFIG)

        assert manager.get_scheduler_location("wordcount") == location

    @patch("schedctl.statemgrs.etcd.requests.Session")
    def test_get_missing_location(self, mock_session_cls):
        """An empty range gives None."""
        session = mock_session_cls.return_value
        session.get.return_value.status_code = 200
        session.post.return_value.json.return_value = {"header": {}}

        manager = EtcdStateManager()
        manager.initialize(ETCD_CONFIG)

        assert manager.get_scheduler_location("wordcount") is None

    @patch("schedctl.statemgrs.etcd.requests.Session")
    def test_request_failure(self, mock_session_cls):
        """HTTP errors on put become CoordinationError."""
        session = mock_session_cls.return_value
        session.get.return_value.status_code = 200
        session.post.return_value.raise_for_status.side_effect = requests.exceptions.HTTPError("500")

        manager = EtcdStateManager()
        manager.initialize(ETCD_CONFIG)

        with pytest.raises(CoordinationError, match="/v3/kv/put failed"):
            manager.set_scheduler_location(SchedulerLocation("wordcount", "host1:9000"), "wordcount")

    @patch("schedctl.statemgrs.etcd.requests.Session")
    def test_close(self, mock_session_cls):
        """close() closes the HTTP session once."""
        session = mock_session_cls.return_value
        session.get.return_value.status_code = 200

        manager = EtcdStateManager()
        manager.initialize(ETCD_CONFIG)
        manager.close()
        manager.close()

        session.close.assert_called_once()
