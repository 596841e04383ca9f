import json
import queue

from nozzle_monitor import mqtt_publisher
from nozzle_monitor.mqtt_publisher import (
    STOP_SENTINEL,
    MQTTBatchPublisher,
    _publisher_process,
    build_batch,
)


class RecordingClient:
    instances = []

    def __init__(self, *args, **kwargs):
        self.published = []
        self.credentials = None
        self.connected_to = None
        self.looping = False
        self.disconnected = False
        RecordingClient.instances.append(self)

    def username_pw_set(self, username, password=None):
        self.credentials = (username, password)

    def connect(self, host, port, keepalive):
        self.connected_to = (host, port)

    def loop_start(self):
        self.looping = True

    def loop_stop(self):
        self.looping = False

    def disconnect(self):
        self.disconnected = True

    def publish(self, topic, payload, qos=0):
        self.published.append((topic, json.loads(payload), qos))


class UnreachableClient(RecordingClient):
    def connect(self, host, port, keepalive):
        raise ConnectionRefusedError("broker down")


def fill_queue(*items):
    q = queue.Queue()
    for item in items:
        q.put(item)
    return q


def test_disabled_publisher_is_noop():
    publisher = MQTTBatchPublisher({"enabled": False}, {"id": "CONCENTRADOR"})
    publisher.start()
    publisher.enqueue({"sensor": "05"})
    publisher.stop()
    assert publisher.dropped == 0


def test_publisher_disabled_by_default():
    assert MQTTBatchPublisher({}, {}).enabled is False


def test_build_batch_payload():
    items = [{"sensor": "05", "value": {"id": "05", "status": "P", "fueling": None}}]
    payload = json.loads(build_batch({"id": "CONCENTRADOR"}, items))
    assert payload == {"device": "CONCENTRADOR", "batch": True, "items": items}


def test_publisher_process_batches_until_stop(monkeypatch):
    RecordingClient.instances = []
    monkeypatch.setattr(mqtt_publisher.mqtt, "Client", RecordingClient)
    events = [{"sensor": f"0{n}"} for n in range(1, 4)]
    config = {
        "host": "broker.local",
        "port": 1884,
        "username": "pump",
        "password": "secret",
        "topic": "fuel/test",
        "qos": 0,
        "max_batch": 2,
        "batch_interval": 60,
    }

    _publisher_process(config, {"id": "CONCENTRADOR"}, fill_queue(*events, STOP_SENTINEL))

    client = RecordingClient.instances[-1]
    assert client.connected_to == ("broker.local", 1884)
    assert client.credentials == ("pump", "secret")
    # Full batch first, the remainder when the stop marker arrives
    assert client.published == [
        ("fuel/test", {"device": "CONCENTRADOR", "batch": True, "items": events[:2]}, 0),
        ("fuel/test", {"device": "CONCENTRADOR", "batch": True, "items": events[2:]}, 0),
    ]
    assert client.looping is False
    assert client.disconnected is True


def test_publisher_process_stop_with_empty_batch(monkeypatch):
    RecordingClient.instances = []
    monkeypatch.setattr(mqtt_publisher.mqtt, "Client", RecordingClient)

    _publisher_process({"batch_interval": 60}, {"id": "CONCENTRADOR"}, fill_queue(STOP_SENTINEL))

    client = RecordingClient.instances[-1]
    assert client.published == []
    assert client.credentials is None
    assert client.disconnected is True


def test_publisher_process_gives_up_when_broker_unreachable(monkeypatch, capsys):
    RecordingClient.instances = []
    monkeypatch.setattr(mqtt_publisher.mqtt, "Client", UnreachableClient)

    _publisher_process({}, {"id": "CONCENTRADOR"}, fill_queue({"sensor": "01"}, STOP_SENTINEL))

    client = RecordingClient.instances[-1]
    assert client.looping is False
    assert client.published == []
    assert "Connection to localhost:1883 failed" in capsys.readouterr().out
