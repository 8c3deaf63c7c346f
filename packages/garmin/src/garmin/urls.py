OAUTH_CONSUMER_URL = "https://thegarth.s3.amazonaws.com/oauth_consumer.json"

USER_AGENT_CONNECTMOBILE = "com.garmin.android.apps.connectmobile"
USER_AGENT_BROWSER = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/117.0.0.0 Safari/537.36"
)

SUPPORTED_DOMAINS = ("garmin.com", "garmin.cn")


class GarminUrls:
    """Endpoint set for one Garmin domain (global or China)."""

    def __init__(self, domain: str = "garmin.com") -> None:
        self.domain = domain
        self.GC_MODERN = f"https://connect.{domain}/modern"
        self.GARMIN_SSO_ORIGIN = f"https://sso.{domain}"
        self.GARMIN_SSO = f"https://sso.{domain}/sso"
        self.GARMIN_SSO_EMBED = f"{self.GARMIN_SSO}/embed"
        self.SIGNIN_URL = f"{self.GARMIN_SSO}/signin"
        self.MFA_VERIFY = f"{self.GARMIN_SSO}/verifyMFA/loginEnterMfaCode"
        self.GC_API = f"https://connectapi.{domain}"
        self.OAUTH_URL = f"{self.GC_API}/oauth-service/oauth"
        self.PREAUTHORIZED = f"{self.OAUTH_URL}/preauthorized"
        self.EXCHANGE = f"{self.OAUTH_URL}/exchange/user/2.0"
