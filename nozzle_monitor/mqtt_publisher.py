import json
import time
import queue
import multiprocessing

import paho.mqtt.client as mqtt

STOP_SENTINEL = "__STOP__"


def build_batch(device_info, items):
    return json.dumps({
        "device": device_info.get("id"),
        "batch": True,
        "items": items,
    })


def _publisher_process(config, device_info, q):
    host = config.get("host", "localhost")
    port = int(config.get("port", 1883))
    username = config.get("username")
    password = config.get("password")
    topic = config.get("topic", "fuel/nozzles")
    qos = int(config.get("qos", 1))
    batch_interval = float(config.get("batch_interval", 2.0))
    max_batch = int(config.get("max_batch", 50))

    client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
    if username:
        client.username_pw_set(username, password)

    try:
        client.connect(host, port, 60)
    except OSError as exc:
        print(f"[MQTT] Connection to {host}:{port} failed: {exc}")
        return

    client.loop_start()
    print(f"[MQTT] Publishing nozzle events to {topic} on {host}:{port}")

    batch = []
    last_flush = time.monotonic()

    def flush():
        nonlocal batch, last_flush
        if not batch:
            return
        client.publish(topic, build_batch(device_info, batch), qos=qos)
        batch = []
        last_flush = time.monotonic()

    try:
        while True:
            try:
                item = q.get(timeout=0.2)
            except queue.Empty:
                item = None

            if item is None:
                if time.monotonic() - last_flush >= batch_interval:
                    flush()
                continue

            if item == STOP_SENTINEL:
                flush()
                break

            batch.append(item)
            if len(batch) >= max_batch:
                flush()
            elif time.monotonic() - last_flush >= batch_interval:
                flush()
    finally:
        client.loop_stop()
        client.disconnect()


class MQTTBatchPublisher:
    """Forwards nozzle events to a publisher process that batches them onto MQTT."""

    def __init__(self, config, device_info):
        self.config = config or {}
        self.device_info = device_info or {}
        self.enabled = bool(self.config.get("enabled", False))
        self._queue = multiprocessing.Queue(maxsize=1000) if self.enabled else None
        self._process = None
        self.dropped = 0

    def start(self):
        if not self.enabled:
            return
        self._process = multiprocessing.Process(
            target=_publisher_process,
            args=(self.config, self.device_info, self._queue),
            daemon=True
        )
        self._process.start()

    def enqueue(self, item):
        if not self.enabled:
            return
        try:
            self._queue.put_nowait(item)
        except queue.Full:
            # Queue full: drop the event
            self.dropped += 1

    def stop(self):
        if self._process and self._process.is_alive():
            try:
                self._queue.put_nowait(STOP_SENTINEL)
            except queue.Full:
                self._process.terminate()
            self._process.join(timeout=2)
        self._process = None
