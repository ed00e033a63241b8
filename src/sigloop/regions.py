from dataclasses import dataclass
from typing import Union

from .env import default_region
from .errors import ConfigurationError


@dataclass(frozen=True)
class Endpoints:
    kinesis: str = ""
    dynamodb: str = ""


@dataclass(frozen=True)
class Region:
    name: str
    endpoints: Endpoints


def _standard(name: str) -> Region:
    return Region(
        name=name,
        endpoints=Endpoints(
            kinesis=f"https://kinesis.{name}.amazonaws.com",
            dynamodb=f"https://dynamodb.{name}.amazonaws.com",
        ),
    )


US_EAST_1 = _standard("us-east-1")
US_WEST_2 = _standard("us-west-2")
EU_WEST_1 = _standard("eu-west-1")
AP_NORTHEAST_1 = _standard("ap-northeast-1")

REGIONS: dict[str, Region] = {
    r.name: r for r in (US_EAST_1, US_WEST_2, EU_WEST_1, AP_NORTHEAST_1)
}


def endpoint_for(service: str, region: Union[str, None] = None) -> str:
    """Look up the endpoint URL for service ("kinesis" | "dynamodb") in region.

    region defaults to AWS_REGION / AWS_DEFAULT_REGION, then us-east-1.
    """
    name = region or default_region()
    info = REGIONS.get(name)
    url = getattr(info.endpoints, service.lower(), "") if info is not None else ""
    if not url:
        raise ConfigurationError(
            f"There is no {service} endpoint in region {name!r}", "NoEndpointForRegion"
        )
    return url
