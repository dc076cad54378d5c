"""
Test cases for configuration validation and the retrieval strategy probe.
"""

from unittest.mock import patch

from assist_core.core import config
from assist_core.vector.strategy import RetrievalStrategy, probe_retrieval_strategy


class TestValidateConfig:

    def test_defaults_are_valid(self):
        with patch.multiple(config, EMBED_PROVIDER="sentence_transformers", VECTOR_BACKEND="auto",
                            SHIPPING_PROVIDER="table"):
            assert config.validate_config() == []

    def test_invalid_backend(self):
        with patch.object(config, "VECTOR_BACKEND", "pgvector"):
            assert any("VECTOR_BACKEND" in issue for issue in config.validate_config())

    def test_http_shipping_needs_url(self):
        with patch.multiple(config, SHIPPING_PROVIDER="http", SHIPPING_API_URL=None):
            assert any("SHIPPING_API_URL" in issue for issue in config.validate_config())

    def test_pattern_thresholds(self):
        with patch.multiple(config, PATTERN_MIN_SAMPLES=0, PATTERN_FAILURE_RATE=1.5):
            issues = config.validate_config()

        assert any("PATTERN_MIN_SAMPLES" in issue for issue in issues)
        assert any("PATTERN_FAILURE_RATE" in issue for issue in issues)

    def test_getters(self):
        with patch.multiple(config, PATTERN_MIN_SAMPLES=5, PATTERN_FAILURE_RATE=0.25):
            assert config.get_pattern_thresholds() == (5, 0.25)


class TestRetrievalProbe:

    def test_keyword_setting(self):
        assert probe_retrieval_strategy("keyword") == RetrievalStrategy.KEYWORD_ONLY

    def test_numpy_setting(self):
        assert probe_retrieval_strategy("numpy") == RetrievalStrategy.BRUTE_FORCE

    @patch("assist_core.vector.strategy.native_backend_available", return_value=True)
    def test_auto_prefers_native(self, mock_available):
        assert probe_retrieval_strategy("auto") == RetrievalStrategy.NATIVE_VECTOR

    @patch("assist_core.vector.strategy.native_backend_available", return_value=False)
    def test_native_missing_degrades(self, mock_available):
        assert probe_retrieval_strategy("faiss") == RetrievalStrategy.BRUTE_FORCE
        assert probe_retrieval_strategy("auto") == RetrievalStrategy.BRUTE_FORCE
