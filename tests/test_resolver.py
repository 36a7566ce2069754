"""
Tests for strategy config resolution.
"""

from unittest.mock import patch

import pytest

from opauth_core.config import Environment
from opauth_core.errors import MissingParameterError
from opauth_core.resolver import add_params, check_expected, resolve_config


@pytest.fixture
def environment():
    return Environment.from_mapping(
        {
            "host": "http://app",
            "callback_url": "/cb",
            "path": "/auth/",
            "security_salt": "s",
            "security_iteration": 5,
        }
    )


class TestResolveConfig:
    """Test merge order, computed keys and templating"""

    def test_merge_defaults_and_caller(self, environment):
        """Caller values override defaults, defaults fill gaps"""
        config = resolve_config(
            "Example",
            {"app_id": "X", "scope": "profile"},
            {"scope": "email", "display": "popup"},
            ["app_id"],
            environment,
        )

        assert config["app_id"] == "X"
        assert config["scope"] == "profile"
        assert config["display"] == "popup"

    def test_computed_keys(self, environment):
        """Callback and strategy URLs are derived from the environment"""
        config = resolve_config("Example", {"app_id": "X"}, {}, ["app_id"], environment)

        assert config["strategy_name"] == "Example"
        assert config["strategy_url_name"] == "example"
        assert config["strategy_callback_url"] == "http://app/cb"
        assert config["path_to_strategy"] == "/auth/example/"
        assert config["complete_url_to_strategy"] == "http://app/auth/example/"

    def test_caller_url_name_used_for_paths(self, environment):
        """A caller-supplied strategy_url_name drives the strategy path"""
        config = resolve_config(
            "Example", {"strategy_url_name": "ex"}, {}, [], environment
        )
        assert config["complete_url_to_strategy"] == "http://app/auth/ex/"

    def test_templates_from_environment_and_config(self, environment):
        """String values are substituted from environment and config keys"""
        config = resolve_config(
            "Example",
            {"redirect_uri": "{complete_url_to_strategy}oauth2callback", "label": "{host}|{nope}"},
            {},
            [],
            environment,
        )

        assert config["redirect_uri"] == "http://app/auth/example/oauth2callback"
        assert config["label"] == "http://app|{nope}"

    def test_config_wins_over_environment_in_dictionary(self, environment):
        """On a key collision the config value is used for substitution"""
        config = resolve_config(
            "Example", {"host": "http://override", "url": "{host}/x"}, {}, [], environment
        )
        assert config["url"] == "http://override/x"

    def test_non_string_values_pass_through(self, environment):
        """Numbers and lists are not templated"""
        config = resolve_config(
            "Example", {"retries": 3, "scopes": ["{host}"]}, {}, [], environment
        )
        assert config["retries"] == 3
        assert config["scopes"] == ["{host}"]

    def test_deterministic(self, environment):
        """Same inputs produce identical output"""
        caller = {"app_id": "X", "redirect": "{strategy_callback_url}?a=1"}
        first = resolve_config("Example", caller, {"scope": "email"}, ["app_id"], environment)
        second = resolve_config("Example", caller, {"scope": "email"}, ["app_id"], environment)
        assert first == second
        assert list(first) == list(second)

    def test_inputs_not_modified(self, environment):
        """Caller config and defaults are left untouched"""
        caller = {"app_id": "X"}
        defaults = {"scope": "email"}
        resolve_config("Example", caller, defaults, ["app_id"], environment)
        assert caller == {"app_id": "X"}
        assert defaults == {"scope": "email"}


class TestExpectedKeys:
    """Test required key validation"""

    def test_missing_key_raises(self, environment):
        """An absent key is fatal and names the strategy and key"""
        with pytest.raises(MissingParameterError) as exc_info:
            resolve_config("Example", {}, {"scope": "email"}, ["app_id"], environment)

        assert exc_info.value.strategy == "Example"
        assert exc_info.value.key == "app_id"
        assert 'Example config parameter for "app_id" expected.' in str(exc_info.value)

    def test_missing_key_fails_before_templating(self, environment):
        """Resolution stops before any value is substituted"""
        with patch("opauth_core.resolver.env_replace") as replace:
            with pytest.raises(MissingParameterError):
                resolve_config(
                    "Example", {"redirect": "{app_id}/x"}, {}, ["app_id"], environment
                )
        replace.assert_not_called()

    def test_empty_value_raises(self, environment):
        """Empty strings are treated as missing"""
        with pytest.raises(MissingParameterError):
            resolve_config("Example", {"app_id": ""}, {}, ["app_id"], environment)

    def test_none_value_raises(self, environment):
        """None is treated as missing"""
        with pytest.raises(MissingParameterError):
            resolve_config("Example", {"app_id": None}, {}, ["app_id"], environment)

    def test_none_caller_value_keeps_default(self, environment):
        """A caller value of None does not replace the strategy default"""
        config = resolve_config(
            "Example", {"app_id": "X", "scope": None}, {"scope": "email"}, ["app_id"], environment
        )
        assert config["scope"] == "email"

    def test_none_caller_value_keeps_expected_default(self, environment):
        config = resolve_config("Example", {"app_id": None}, {"app_id": "D"}, ["app_id"], environment)
        assert config["app_id"] == "D"

    def test_default_satisfies_expectation(self, environment):
        """A default value counts as present"""
        config = resolve_config("Example", {}, {"app_id": "D"}, ["app_id"], environment)
        assert config["app_id"] == "D"

    def test_forbidden_sentinel(self, environment):
        """A value equal to the forbidden sentinel is rejected"""
        with pytest.raises(MissingParameterError) as exc_info:
            resolve_config(
                "Example",
                {"app_secret": "CHANGE_ME"},
                {},
                [("app_secret", "CHANGE_ME")],
                environment,
            )
        assert exc_info.value.key == "app_secret"

    def test_templated_to_empty_raises(self, environment):
        """A key that substitutes to an empty string fails the final check"""
        env = Environment(host="http://app", extra={"blank": ""})
        with pytest.raises(MissingParameterError):
            resolve_config("Example", {"app_id": "{blank}"}, {}, ["app_id"], env)

    def test_check_expected_passes(self):
        """check_expected returns quietly when everything is present"""
        check_expected("Example", {"a": "1", "b": ["x"]}, ["a", ("b", "nope")])


class TestAddParams:
    """Test copying config values into provider parameters"""

    def test_copies_present_keys(self):
        """Keys present in the config are copied, others skipped"""
        params = add_params({"app_id": "X", "scope": "email"}, ["app_id", "scope", "state"])
        assert params == {"app_id": "X", "scope": "email"}

    def test_renames_with_pairs(self):
        """Pairs map a config key to a different parameter name"""
        params = add_params({"app_id": "X"}, [("app_id", "client_id")], {"response_type": "code"})
        assert params == {"response_type": "code", "client_id": "X"}
