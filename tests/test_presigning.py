"""Tests for presigning module.

Tests the presigning interceptor hooks and the presigning runtime plugin.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from presigner.components import RuntimeComponentsBuilder, StaticTimeSource
from presigner.config_bag import ConfigBag, FrozenLayer, Layer
from presigner.errors import MissingSigningConfigError, PresigningError
from presigner.interceptors import (
    DisableInterceptor,
    InterceptorContext,
    InvocationIdInterceptor,
    RequestInfoInterceptor,
    UserAgentInterceptor,
)
from presigner.models import (
    HeaderSerializationSettings,
    PresigningConfig,
    SignatureLocation,
    SigningOperationConfig,
    SigningOptions,
)
from presigner.presigning import (
    DISABLED_REASON,
    PresigningInterceptor,
    PresigningRuntimePlugin,
)
from presigner.retry import NeverRetryStrategy
from presigner.signable_body import BytesBody, UnsignedPayload

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def presigning_config() -> PresigningConfig:
    return PresigningConfig(start_time=T0, expires=timedelta(seconds=300))


@pytest.fixture
def interceptor(presigning_config: PresigningConfig) -> PresigningInterceptor:
    return PresigningInterceptor(presigning_config, UnsignedPayload())


@pytest.fixture
def context() -> InterceptorContext:
    return InterceptorContext(input=None)


def bag_with_signing_config(signing_config: SigningOperationConfig) -> ConfigBag:
    layer = Layer("SigningSetup").store_put(signing_config)
    return ConfigBag.of_layers(layer.freeze())


class TestModifyBeforeSerialization:
    """Tests for the before-serialization hook."""

    def test_sets_both_omit_flags(self, interceptor, context):
        """Should store settings that omit Content-Length and Content-Type."""
        cfg = ConfigBag.base()

        interceptor.modify_before_serialization(context, MagicMock(), cfg)

        settings = cfg.load(HeaderSerializationSettings)
        assert settings.omit_default_content_length is True
        assert settings.omit_default_content_type is True

    def test_overwrites_prior_settings(self, interceptor, context):
        """Prior settings from a lower layer should be overridden."""
        layer = Layer("defaults").store_put(HeaderSerializationSettings())
        cfg = ConfigBag.of_layers(layer.freeze())

        interceptor.modify_before_serialization(context, MagicMock(), cfg)

        assert cfg.load(HeaderSerializationSettings) == HeaderSerializationSettings(
            omit_default_content_length=True,
            omit_default_content_type=True,
        )

    def test_overwrites_settings_in_interceptor_state(self, interceptor, context):
        """Settings already written during this request should be replaced."""
        cfg = ConfigBag.base()
        cfg.store_put(HeaderSerializationSettings().omit_content_length())

        interceptor.modify_before_serialization(context, MagicMock(), cfg)

        assert cfg.load(HeaderSerializationSettings).omit_default_content_type is True


class TestModifyBeforeSigning:
    """Tests for the before-signing hook."""

    def test_switches_to_query_params(self, interceptor, context):
        """Signature location should become query params."""
        cfg = bag_with_signing_config(SigningOperationConfig("us-east-1", "s3"))

        interceptor.modify_before_signing(context, MagicMock(), cfg)

        options = cfg.load(SigningOperationConfig).signing_options
        assert options.signature_location == SignatureLocation.QUERY_PARAMS

    def test_sets_expiry(self, interceptor, context):
        """Expiry should equal the presigning config's expiry."""
        cfg = bag_with_signing_config(SigningOperationConfig("us-east-1", "s3"))

        interceptor.modify_before_signing(context, MagicMock(), cfg)

        options = cfg.load(SigningOperationConfig).signing_options
        assert options.expires_in == timedelta(seconds=300)

    def test_sets_payload_override(self, presigning_config, context):
        """Payload override should be the interceptor's signable body."""
        body = BytesBody(b"hello")
        interceptor = PresigningInterceptor(presigning_config, body)
        cfg = bag_with_signing_config(SigningOperationConfig("us-east-1", "s3"))

        interceptor.modify_before_signing(context, MagicMock(), cfg)

        override = cfg.load(SigningOperationConfig).signing_options.payload_override
        assert override == body
        assert override.data is body.data

    def test_preserves_other_fields(self, interceptor, context):
        """Fields other than expiry, location and payload are untouched."""
        prior = SigningOperationConfig(
            region="eu-west-1",
            service="s3",
            signing_options=SigningOptions(
                double_uri_encode=False,
                normalize_uri_path=False,
                omit_session_token=True,
            ),
        )
        cfg = bag_with_signing_config(prior)

        interceptor.modify_before_signing(context, MagicMock(), cfg)

        updated = cfg.load(SigningOperationConfig)
        assert updated.region == "eu-west-1"
        assert updated.service == "s3"
        assert updated.signing_options.double_uri_encode is False
        assert updated.signing_options.normalize_uri_path is False
        assert updated.signing_options.omit_session_token is True

    def test_does_not_mutate_upstream_entry(self, interceptor, context):
        """The upstream entry is copied, not edited in place."""
        prior = SigningOperationConfig("us-east-1", "s3")
        cfg = bag_with_signing_config(prior)

        interceptor.modify_before_signing(context, MagicMock(), cfg)

        assert prior.signing_options.signature_location == SignatureLocation.HEADERS
        assert prior.signing_options.expires_in is None
        assert cfg.load(SigningOperationConfig) is not prior

    def test_writes_to_interceptor_state(self, interceptor, context):
        """The updated entry lives in the per-request layer."""
        cfg = bag_with_signing_config(SigningOperationConfig("us-east-1", "s3"))

        interceptor.modify_before_signing(context, MagicMock(), cfg)

        assert SigningOperationConfig in cfg.interceptor_state()

    def test_missing_signing_config_raises(self, interceptor, context):
        """Should raise MissingSigningConfigError when no entry exists."""
        cfg = ConfigBag.base()

        with pytest.raises(MissingSigningConfigError):
            interceptor.modify_before_signing(context, MagicMock(), cfg)

    def test_missing_signing_config_is_presigning_error(self, interceptor, context):
        """The error belongs to the presigning error family."""
        with pytest.raises(PresigningError, match="SigningOperationConfig"):
            interceptor.modify_before_signing(context, MagicMock(), ConfigBag.base())

    def test_missing_signing_config_leaves_state_untouched(self, interceptor, context):
        """Nothing is written when the hook fails."""
        cfg = ConfigBag.base()
        request = MagicMock()
        context.request = request

        with pytest.raises(MissingSigningConfigError):
            interceptor.modify_before_signing(context, MagicMock(), cfg)

        assert cfg.load(SigningOperationConfig) is None
        assert request.mock_calls == []

    def test_repeated_invocation_is_stable(self, interceptor, context):
        """Invoking the hook twice yields the same result."""
        cfg = bag_with_signing_config(SigningOperationConfig("us-east-1", "s3"))

        interceptor.modify_before_signing(context, MagicMock(), cfg)
        first = cfg.load(SigningOperationConfig)
        interceptor.modify_before_signing(context, MagicMock(), cfg)
        second = cfg.load(SigningOperationConfig)

        assert first == second


class TestBothHooks:
    """Tests running both hooks in order."""

    def test_worked_example(self, context):
        """300s expiry, T0 and an unsigned payload over a header-signed config."""
        interceptor = PresigningInterceptor(
            PresigningConfig(start_time=T0, expires=timedelta(seconds=300)),
            UnsignedPayload(),
        )
        prior = SigningOperationConfig(
            region="us-east-1",
            service="s3",
            signing_options=SigningOptions(
                expires_in=None,
                signature_location=SignatureLocation.HEADERS,
                payload_override=None,
                double_uri_encode=False,
            ),
        )
        cfg = bag_with_signing_config(prior)

        interceptor.modify_before_serialization(context, MagicMock(), cfg)
        interceptor.modify_before_signing(context, MagicMock(), cfg)

        assert cfg.load(SigningOperationConfig) == SigningOperationConfig(
            region="us-east-1",
            service="s3",
            signing_options=SigningOptions(
                expires_in=timedelta(seconds=300),
                signature_location=SignatureLocation.QUERY_PARAMS,
                payload_override=UnsignedPayload(),
                double_uri_encode=False,
            ),
        )
        settings = cfg.load(HeaderSerializationSettings)
        assert settings.omit_default_content_length is True
        assert settings.omit_default_content_type is True

    def test_separate_bags_do_not_interfere(self, interceptor, context):
        """One interceptor can serve independent requests."""
        cfg_a = bag_with_signing_config(SigningOperationConfig("us-east-1", "s3"))
        cfg_b = bag_with_signing_config(SigningOperationConfig("eu-west-1", "s3"))

        interceptor.modify_before_signing(context, MagicMock(), cfg_a)
        interceptor.modify_before_signing(context, MagicMock(), cfg_b)

        assert cfg_a.load(SigningOperationConfig).region == "us-east-1"
        assert cfg_b.load(SigningOperationConfig).region == "eu-west-1"


class TestOtherHooks:
    """Tests that unimplemented hooks are no-ops."""

    @pytest.mark.parametrize(
        "hook",
        ["read_before_execution", "read_after_serialization", "read_after_signing"],
    )
    def test_noop_hooks(self, interceptor, context, hook):
        """Other extension points should not touch the config bag."""
        cfg = ConfigBag.base()

        getattr(interceptor, hook)(context, MagicMock(), cfg)

        assert len(cfg.freeze()) == 0


class TestPresigningRuntimePlugin:
    """Tests for PresigningRuntimePlugin."""

    @pytest.fixture
    def plugin(self, presigning_config) -> PresigningRuntimePlugin:
        return PresigningRuntimePlugin(presigning_config, UnsignedPayload())

    def test_runtime_components_builder_name(self, plugin):
        """Builder should be named after the plugin."""
        builder = plugin.runtime_components()
        assert isinstance(builder, RuntimeComponentsBuilder)
        assert builder.name == "PresigningRuntimePlugin"

    def test_registers_presigning_interceptor(self, plugin, presigning_config):
        """Builder should carry exactly one presigning interceptor."""
        interceptors = plugin.runtime_components().interceptors

        assert len(interceptors) == 1
        assert isinstance(interceptors[0], PresigningInterceptor)
        assert interceptors[0].config == presigning_config
        assert interceptors[0].payload_override == UnsignedPayload()

    def test_never_retries(self, plugin):
        """Retry strategy should permit exactly one attempt."""
        strategy = plugin.runtime_components().retry_strategy

        assert isinstance(strategy, NeverRetryStrategy)
        assert strategy.max_attempts == 1
        assert strategy.should_attempt_initial_request() is True
        assert strategy.should_attempt_retry(1, ConnectionError()).should_retry is False
        assert strategy.should_attempt_retry(1, ValueError()).should_retry is False

    def test_clock_is_pinned_to_start_time(self, plugin):
        """Clock should return the start time on every read."""
        time_source = plugin.runtime_components().time_source

        assert isinstance(time_source, StaticTimeSource)
        assert time_source.now() == T0
        assert time_source.now() == T0

    def test_runtime_components_is_borrowed(self, plugin):
        """The same builder is returned on every call."""
        assert plugin.runtime_components() is plugin.runtime_components()

    def test_config_layer_is_frozen(self, plugin):
        """config() should return a frozen layer named Presigning."""
        layer = plugin.config()

        assert isinstance(layer, FrozenLayer)
        assert layer.name == "Presigning"

    def test_config_layer_disables_three_interceptors(self, plugin):
        """Exactly the three request-decorating interceptors are disabled."""
        layer = plugin.config()

        keys = set(layer.keys())
        assert keys == {
            (DisableInterceptor, InvocationIdInterceptor),
            (DisableInterceptor, RequestInfoInterceptor),
            (DisableInterceptor, UserAgentInterceptor),
        }

    def test_config_layer_reason_is_presigning(self, plugin):
        """Every marker should carry the presigning reason."""
        layer = plugin.config()

        for key in layer.keys():
            marker = layer.load(key)
            assert marker.reason == DISABLED_REASON == "presigning"

    def test_config_layer_does_not_disable_presigning_interceptor(self, plugin):
        """The presigning interceptor itself stays enabled."""
        cfg = ConfigBag.of_layers(plugin.config())
        assert cfg.load_key((DisableInterceptor, PresigningInterceptor)) is None
