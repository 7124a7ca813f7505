from printshop.orders.queue import STATUS_PENDING, STATUS_PROCESSING

NOW = 1_715_000_000_000
MINUTE = 60 * 1000


def test_enqueue_creates_pending_items(queue, store):
    item_ids = queue.enqueue(["100", "200"], now=NOW)

    assert len(item_ids) == 2
    item = store.get("refresh_queue", item_ids[0])
    assert item["orderId"] == "100"
    assert item["status"] == STATUS_PENDING
    assert item["priority"] == 1
    assert item["retryCount"] == 0
    assert item["createdAt"] == NOW
    assert "lastError" not in item


def test_enqueue_is_capped_per_call(queue):
    item_ids = queue.enqueue([str(i) for i in range(25)])
    assert len(item_ids) == 10
    assert queue.count_pending() == 10


def test_duplicate_order_ids_are_kept(queue):
    queue.enqueue(["100"])
    queue.enqueue(["100"])
    assert queue.count_pending() == 2


def test_dequeue_orders_by_priority_then_age(queue):
    queue.enqueue(["old-low"], priority=1, now=NOW - 3 * MINUTE)
    queue.enqueue(["new-high"], priority=5, now=NOW)
    queue.enqueue(["old-high"], priority=5, now=NOW - 2 * MINUTE)
    queue.enqueue(["new-low"], priority=1, now=NOW - MINUTE)

    items = queue.dequeue_batch(3)

    assert [i["orderId"] for i in items] == ["old-high", "new-high", "old-low"]


def test_dequeue_skips_processing_items(queue):
    queue.enqueue(["1", "2"])
    first = queue.dequeue_batch(1)[0]
    queue.mark_processing(first)

    remaining = queue.dequeue_batch(5)
    assert [i["orderId"] for i in remaining] == ["2"]
    assert first["status"] == STATUS_PROCESSING


def test_retry_puts_item_back_to_pending(queue, store):
    queue.enqueue(["1"])
    item = queue.dequeue_batch(1)[0]
    queue.mark_processing(item)

    assert queue.retry(item, "timeout") == 1

    stored = store.get("refresh_queue", item["id"])
    assert stored["status"] == STATUS_PENDING
    assert stored["retryCount"] == 1
    assert stored["lastError"] == "timeout"


def test_record_failure_drops_on_third_attempt(queue, store):
    queue.enqueue(["1"])

    for expected_retries in (1, 2):
        item = queue.dequeue_batch(1)[0]
        assert queue.record_failure(item, "HTTP 500") is False
        assert store.get("refresh_queue", item["id"])["retryCount"] == expected_retries

    item = queue.dequeue_batch(1)[0]
    assert queue.record_failure(item, "HTTP 500") is True
    assert store.get("refresh_queue", item["id"]) is None
    assert queue.count_pending() == 0


def test_complete_deletes_item(queue):
    queue.enqueue(["1"])
    item = queue.dequeue_batch(1)[0]
    queue.complete(item)
    assert queue.dequeue_batch(5) == []


def test_purge_removes_old_items_of_any_status(queue, store):
    queue.enqueue(["stuck"], now=NOW - 2 * 60 * MINUTE)
    queue.enqueue(["old"], now=NOW - 90 * MINUTE)
    queue.enqueue(["recent"], now=NOW - 5 * MINUTE)
    stuck = queue.dequeue_batch(1)[0]
    queue.mark_processing(stuck)

    deleted = queue.purge_older_than(60 * MINUTE, now=NOW)

    assert deleted == 2
    assert [i["orderId"] for i in queue.dequeue_batch(5)] == ["recent"]
    assert store.get("refresh_queue", stuck["id"]) is None


def test_purge_respects_limit(queue):
    queue.enqueue([str(i) for i in range(5)], now=NOW - 2 * 60 * MINUTE)
    assert queue.purge_older_than(60 * MINUTE, limit=3, now=NOW) == 3
    assert queue.count_pending() == 2


def test_purge_with_nothing_old(queue):
    queue.enqueue(["1"], now=NOW)
    assert queue.purge_older_than(60 * MINUTE, now=NOW) == 0
