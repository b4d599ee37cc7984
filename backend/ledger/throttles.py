from rest_framework.throttling import SimpleRateThrottle


class LedgerRateThrottle(SimpleRateThrottle):
    """Per-account buckets for signed-in callers, per-address buckets otherwise."""

    def get_cache_key(self, request, view):
        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            ident = f"user-{user.pk}"
        else:
            ident = f"addr-{self.get_ident(request)}"
        return self.cache_format % {"scope": self.scope, "ident": ident}


class VoucherClaimRateThrottle(LedgerRateThrottle):
    scope = "voucher_claim"


class QrRateThrottle(LedgerRateThrottle):
    scope = "qr"


class LookupRateThrottle(LedgerRateThrottle):
    scope = "lookup"
