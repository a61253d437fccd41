import threading

from proxy_socket.core.lib.proxy_stats import ByteCounters, ProxyStats, proxy_stats


def test_update_bytes_accumulates():
    stats = ProxyStats()
    stats.update_bytes(sent=10, received=0)
    stats.update_bytes(sent=0, received=32)
    assert stats.total_bytes_sent == 10
    assert stats.total_bytes_received == 32
    assert stats.snapshot() == (32, 10)


def test_bandwidth_covers_recent_traffic():
    stats = ProxyStats()
    assert stats.get_bandwidth() == 0
    stats.update_bytes(sent=500, received=500)
    assert stats.get_bandwidth() == 200


def test_uptime_grows_from_creation():
    stats = ProxyStats()
    first = stats.uptime()
    assert first >= 0
    assert stats.uptime() >= first


def test_connection_counter():
    stats = ProxyStats()
    stats.connection_started()
    stats.connection_started()
    stats.connection_ended()
    assert stats.active_connections == 1


def test_concurrent_updates_are_not_lost():
    stats = ProxyStats()
    workers, rounds = 8, 2000

    def hammer():
        for _ in range(rounds):
            stats.update_bytes(sent=1, received=2)

    threads = [threading.Thread(target=hammer) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert stats.snapshot() == (2 * workers * rounds, workers * rounds)


def test_counters_start_at_zero():
    assert ByteCounters() == ByteCounters(bytes_read=0, bytes_written=0)
    assert isinstance(proxy_stats, ProxyStats)
