import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cmdpipe.config import EnvConfigProvider


def test_defaults():
    provider = EnvConfigProvider({})

    broker = provider.get_broker_config()
    channels = provider.get_channel_config()
    dispatch = provider.get_dispatch_config()

    assert broker.url == "unix:///tmp/redis.sock"
    assert broker.service == "cmdpipe"
    assert broker.prefetch == 10
    assert broker.poll_interval == 0.4
    assert channels.tmp_dir == "/tmp"
    assert channels.accept_timeout is None
    assert channels.exit_timeout is None
    assert channels.strict is False
    assert dispatch.env_spec == ""
    assert provider.get_logging_config().level == "INFO"


def test_tmp_dir_moves_default_redis_socket():
    provider = EnvConfigProvider({"CMDPIPE_TMP_DIR": "/run/cmdpipe"})

    assert provider.get_channel_config().tmp_dir == "/run/cmdpipe"
    assert provider.get_broker_config().url == "unix:///run/cmdpipe/redis.sock"


def test_overrides():
    provider = EnvConfigProvider({
        "CMDPIPE_REDIS_URL": "redis://queue:6379/2",
        "CMDPIPE_SERVICE": "staging",
        "CMDPIPE_PREFETCH": "1",
        "CMDPIPE_POLL_INTERVAL": "0.05",
        "CMDPIPE_ACCEPT_TIMEOUT": "30",
        "CMDPIPE_EXIT_TIMEOUT": "2.5",
        "CMDPIPE_STRICT_CHANNELS": "TRUE",
        "CMDPIPE_ENV": "FOO=bar;HOME",
        "LOG_LEVEL": "debug",
    })

    broker = provider.get_broker_config()
    channels = provider.get_channel_config()

    assert broker.url == "redis://queue:6379/2"
    assert broker.service == "staging"
    assert broker.prefetch == 1
    assert broker.poll_interval == 0.05
    assert channels.accept_timeout == 30.0
    assert channels.exit_timeout == 2.5
    assert channels.strict is True
    assert provider.get_dispatch_config().env_spec == "FOO=bar;HOME"
    assert provider.get_logging_config().level == "DEBUG"


def test_empty_values_fall_back_to_defaults():
    provider = EnvConfigProvider({"CMDPIPE_TMP_DIR": "", "CMDPIPE_ACCEPT_TIMEOUT": ""})

    assert provider.get_channel_config().tmp_dir == "/tmp"
    assert provider.get_channel_config().accept_timeout is None
