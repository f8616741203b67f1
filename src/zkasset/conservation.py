"""
Conservation auditing.

For every asset, public supply plus private supply is constant across every
operation except an authorized mint. ``ConservationChecker`` verifies this
from pre/post supply figures; the note registry runs it as a guard after
each applied transition, and tests use it as an oracle.
"""

import logging

logger = logging.getLogger(__name__)
import time
from dataclasses import dataclass, field
from typing import Any, Dict

from .errors import ConservationViolation, ErrorContext, ValidationError


@dataclass(frozen=True)
class SupplySnapshot:
    """Public and private supply of one asset at a point in the sequence."""

    asset: str
    public_supply: int
    private_supply: int
    scaling_factor: int = 1
    sequence: int = 0
    taken_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset": self.asset,
            "public_supply": self.public_supply,
            "private_supply": self.private_supply,
            "scaling_factor": self.scaling_factor,
            "sequence": self.sequence,
            "taken_at": self.taken_at,
        }


class ConservationChecker:
    """Verifies the public/private conservation law."""

    def __init__(self) -> None:
        self.checks_passed = 0
        self.violations = 0

    def verify(
        self,
        asset: str,
        pre_public_supply: int,
        pre_private_supply: int,
        post_public_supply: int,
        post_private_supply: int,
        public_value_delta: int,
        scaling_factor: int = 1,
    ) -> None:
        """Check one join-split transition.

        The public side must have moved by exactly ``public_value_delta``
        note units (``public_value_delta * scaling_factor`` public units), and
        the private side by the opposite amount.

        Raises:
            ConservationViolation: if either condition fails.
        """
        if scaling_factor <= 0:
            raise ValidationError(
                "scaling_factor must be positive",
                field="scaling_factor",
                value=scaling_factor,
            )

        public_change = post_public_supply - pre_public_supply
        private_change = post_private_supply - pre_private_supply
        expected_public = public_value_delta * scaling_factor

        if public_change != expected_public:
            self._fail(
                asset,
                f"Public supply of {asset} moved by {public_change}, "
                f"expected {expected_public}",
                expected_public,
                public_change,
            )
        if public_change % scaling_factor != 0:
            self._fail(
                asset,
                f"Public supply change {public_change} of {asset} is not a whole "
                f"number of note units (scaling factor {scaling_factor})",
                0,
                public_change % scaling_factor,
            )
        if public_change // scaling_factor + private_change != 0:
            self._fail(
                asset,
                f"Supply of {asset} not conserved: public {public_change} "
                f"(scaling {scaling_factor}), private {private_change}",
                0,
                public_change // scaling_factor + private_change,
            )

        self.checks_passed += 1
        logger.debug(
            "Conservation holds for %s: public %+d, private %+d",
            asset,
            public_change,
            private_change,
        )

    def verify_mint(
        self,
        asset: str,
        pre_public_supply: int,
        pre_private_supply: int,
        post_public_supply: int,
        post_private_supply: int,
        minted: int,
    ) -> None:
        """Check an authorized mint: public untouched, private up by ``minted``."""
        if post_public_supply != pre_public_supply:
            self._fail(
                asset,
                f"Mint of {asset} changed public supply by "
                f"{post_public_supply - pre_public_supply}",
                0,
                post_public_supply - pre_public_supply,
            )
        if post_private_supply - pre_private_supply != minted:
            self._fail(
                asset,
                f"Mint of {asset} raised private supply by "
                f"{post_private_supply - pre_private_supply}, expected {minted}",
                minted,
                post_private_supply - pre_private_supply,
            )
        self.checks_passed += 1

    def snapshot(self, registry, asset: str) -> SupplySnapshot:
        """Consistent supply snapshot of ``asset`` taken from ``registry``."""
        return registry.supply_snapshot(asset)

    def verify_snapshots(
        self, pre: SupplySnapshot, post: SupplySnapshot, public_value_delta: int
    ) -> None:
        """``verify`` over two snapshots of the same asset."""
        if pre.asset != post.asset:
            raise ValidationError(
                f"Snapshots cover different assets: {pre.asset} and {post.asset}",
                field="asset",
            )
        self.verify(
            pre.asset,
            pre.public_supply,
            pre.private_supply,
            post.public_supply,
            post.private_supply,
            public_value_delta,
            scaling_factor=post.scaling_factor,
        )

    def _fail(self, asset: str, message: str, expected: int, actual: int) -> None:
        self.violations += 1
        logger.error("Conservation violation: %s", message)
        raise ConservationViolation(
            message,
            expected=expected,
            actual=actual,
            context=ErrorContext(component="conservation", asset=asset),
        )
