"""Module which initializes Dynaconf"""

from dynaconf import Dynaconf, Validator


# pylint: disable=too-few-public-methods
class DefaultValueValidator(Validator):
    """Validator which will set the default only when the original value is missing"""

    def __init__(self, name, default, **kwargs) -> None:
        super().__init__(
            name,
            ne=None,
            messages={"operations": "{name} must {operation} {op_value} but it is {value} in env {env}."},
            default=default,
            when=Validator(name, must_exist=False) | Validator(name, eq=None),
            **kwargs
        )


settings = Dynaconf(
    environments=True,
    lowercase_read=True,
    load_dotenv=True,
    settings_files=["config/settings.yaml", "config/secrets.yaml"],
    envvar_prefix="ROUTEBINDER",
    merge_enabled=True,
    validators=[
        DefaultValueValidator("controller_name", default="apisix.apache.org/apisix-ingress-controller"),
        DefaultValueValidator("reference_grant.enabled", default=True, is_type_of=bool),
        DefaultValueValidator("status.queue_size", default=1000, cast=int, gte=1),
        DefaultValueValidator("status.poll_interval", default=0.1, cast=float, gt=0),
        DefaultValueValidator("status.retry.max_tries", default=4, cast=int, gte=1),
        DefaultValueValidator("status.retry.base", default=5, cast=float, gt=1),
        DefaultValueValidator("status.retry.factor", default=0.01, cast=float, gt=0),
        DefaultValueValidator("readiness.timeout", default=60, cast=float, gt=0),
    ],
)
