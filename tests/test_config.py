"""Config 模块测试。

测试 DIGI_* 环境变量解析。
"""

from __future__ import annotations

import logging
import os
from unittest import mock

import pytest

from digi_studio.app import configure_logging
from digi_studio.config import (
    DEFAULT_CHAT_MODEL,
    DEFAULT_EDIT_MODEL,
    DEFAULT_ENDPOINT,
    DEFAULT_IMAGE_MODEL,
    generate_log_file_path,
    get_api_key,
    get_studio_config,
    mask_token,
)
from digi_studio.gemini.errors import ErrorKind

DIGI_KEYS = ("DIGI_", "API_KEY", "GOOGLE_API_KEY")


def clean_env(**overrides: str) -> dict[str, str]:
    """去掉所有 DIGI_* 和 key 变量后叠加 overrides。"""
    env = {k: v for k, v in os.environ.items() if not k.startswith(DIGI_KEYS)}
    env.update(overrides)
    return env


class TestApiKey:
    """测试 API key 读取顺序。"""

    def test_digi_key_preferred(self):
        with mock.patch.dict(os.environ, clean_env(DIGI_API_KEY="a", API_KEY="b", GOOGLE_API_KEY="c"), clear=True):
            assert get_api_key() == "a"

    def test_fallback_api_key(self):
        with mock.patch.dict(os.environ, clean_env(API_KEY="b", GOOGLE_API_KEY="c"), clear=True):
            assert get_api_key() == "b"

    def test_fallback_google_api_key(self):
        with mock.patch.dict(os.environ, clean_env(GOOGLE_API_KEY="c"), clear=True):
            assert get_api_key() == "c"

    def test_missing_key_is_empty(self):
        with mock.patch.dict(os.environ, clean_env(), clear=True):
            assert get_api_key() == ""

    def test_rotation_visible_immediately(self):
        """每次调用都重新读取环境变量。"""
        with mock.patch.dict(os.environ, clean_env(DIGI_API_KEY="old"), clear=True):
            assert get_api_key() == "old"
            os.environ["DIGI_API_KEY"] = "new"
            assert get_api_key() == "new"


class TestStudioConfig:
    """测试配置加载。"""

    def test_defaults(self):
        with mock.patch.dict(os.environ, clean_env(), clear=True):
            config = get_studio_config()
        assert config.base_url == DEFAULT_ENDPOINT
        assert config.image_model == DEFAULT_IMAGE_MODEL == "imagen-4.0-generate-001"
        assert config.edit_model == DEFAULT_EDIT_MODEL == "gemini-2.5-flash-image"
        assert config.chat_model == DEFAULT_CHAT_MODEL == "gemini-2.5-flash"
        assert config.retry_policy.max_attempts == 3
        assert config.retry_policy.initial_delay == 1.0
        assert config.retry_policy.backoff_multiplier == 2.0
        assert ErrorKind.FORBIDDEN in config.retry_policy.retry_on
        assert config.debug is False
        assert config.log_debug is False

    @pytest.mark.parametrize("raw,expected", [
        ("https://proxy.example.com", "https://proxy.example.com/v1beta"),
        ("https://proxy.example.com/", "https://proxy.example.com/v1beta"),
        ("https://proxy.example.com/v1", "https://proxy.example.com/v1"),
        ("https://proxy.example.com/v1beta/", "https://proxy.example.com/v1beta"),
    ])
    def test_endpoint_normalized(self, raw: str, expected: str):
        with mock.patch.dict(os.environ, clean_env(DIGI_ENDPOINT=raw), clear=True):
            assert get_studio_config().base_url == expected

    def test_model_overrides(self):
        env = clean_env(DIGI_IMAGE_MODEL="i", DIGI_EDIT_MODEL="e", DIGI_CHAT_MODEL="c")
        with mock.patch.dict(os.environ, env, clear=True):
            config = get_studio_config()
        assert (config.image_model, config.edit_model, config.chat_model) == ("i", "e", "c")

    def test_retry_overrides(self):
        env = clean_env(DIGI_RETRY_ATTEMPTS="5", DIGI_RETRY_DELAY_MS="250", DIGI_RETRY_MULTIPLIER="3")
        with mock.patch.dict(os.environ, env, clear=True):
            policy = get_studio_config().retry_policy
        assert policy.max_attempts == 5
        assert policy.initial_delay == 0.25
        assert policy.backoff_multiplier == 3.0

    @pytest.mark.parametrize("name,value", [
        ("DIGI_RETRY_ATTEMPTS", "zero"),
        ("DIGI_RETRY_DELAY_MS", "soon"),
        ("DIGI_RETRY_MULTIPLIER", ""),
    ])
    def test_invalid_retry_values_use_defaults(self, name: str, value: str):
        with mock.patch.dict(os.environ, clean_env(**{name: value}), clear=True):
            policy = get_studio_config().retry_policy
        assert (policy.max_attempts, policy.initial_delay, policy.backoff_multiplier) == (3, 1.0, 2.0)

    def test_retry_values_clamped(self):
        """次数至少 1，倍数至少 1。"""
        env = clean_env(DIGI_RETRY_ATTEMPTS="0", DIGI_RETRY_MULTIPLIER="0.1")
        with mock.patch.dict(os.environ, env, clear=True):
            policy = get_studio_config().retry_policy
        assert policy.max_attempts == 1
        assert policy.backoff_multiplier == 1.0

    @pytest.mark.parametrize("value", ["false", "0", "no", "off"])
    def test_forbidden_retry_disabled(self, value: str):
        with mock.patch.dict(os.environ, clean_env(DIGI_RETRY_FORBIDDEN=value), clear=True):
            retry_on = get_studio_config().retry_policy.retry_on
        assert ErrorKind.FORBIDDEN not in retry_on
        assert ErrorKind.RATE_LIMITED in retry_on
        assert ErrorKind.NOT_FOUND in retry_on

    @pytest.mark.parametrize("value", ["true", "True", "1", "yes", "on"])
    def test_debug_truthy(self, value: str):
        with mock.patch.dict(os.environ, clean_env(DIGI_DEBUG=value), clear=True):
            assert get_studio_config().debug is True

    def test_log_debug_has_no_side_effects(self):
        """加载配置不生成日志文件路径，工具调用时可反复加载。"""
        env = clean_env(DIGI_LOG_DEBUG="1")
        with mock.patch.dict(os.environ, env, clear=True), \
                mock.patch("digi_studio.config.generate_log_file_path") as generate:
            config = get_studio_config()
            get_studio_config()
        assert config.log_debug is True
        generate.assert_not_called()

    def test_log_file_path(self):
        path = generate_log_file_path()
        assert path.endswith(".log")
        assert os.path.isdir(os.path.dirname(path))

    def test_repr_masks_key(self):
        with mock.patch.dict(os.environ, clean_env(DIGI_API_KEY="AIzaSyD-secret-value-1234"), clear=True):
            text = repr(get_studio_config())
        assert "secret" not in text
        assert "AIza...1234" in text


class TestMaskToken:
    def test_empty(self):
        assert mask_token("") == "(empty)"

    def test_short(self):
        assert mask_token("abcdef") == "ab***"

    def test_bearer_prefix_removed(self):
        assert mask_token("Bearer ya29.abcdefghijkl") == "ya29...ijkl"


class TestConfigureLogging:
    """测试日志配置。"""

    @pytest.mark.parametrize("log_debug,expected", [("0", logging.INFO), ("1", logging.DEBUG)])
    def test_package_level(self, log_debug: str, expected: int):
        package_logger = logging.getLogger("digi_studio")
        original = package_logger.level
        try:
            with mock.patch.dict(os.environ, clean_env(DIGI_LOG_DEBUG=log_debug), clear=True):
                configure_logging()
            assert package_logger.level == expected
        finally:
            package_logger.setLevel(original)
