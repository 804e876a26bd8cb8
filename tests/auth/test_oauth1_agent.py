import base64
import hashlib
import hmac
from urllib.parse import unquote

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from apiwright.auth.base import AuthContext
from apiwright.auth.errors import OAuth1Error, SignatureMethodError
from apiwright.auth.oauth1 import (
    OAuth1Agent,
    OAuth1Params,
    OAuth1SignatureMethod,
    percent_encode,
    signature_base_string,
)
from apiwright.request.spec import FormData

PHOTOS_URL = "http://photos.example.net/photos?file=vacation.jpg&size=original"
PHOTOS_BASE_STRING = (
    "GET&http%3A%2F%2Fphotos.example.net%2Fphotos&file%3Dvacation.jpg"
    "%26oauth_consumer_key%3Ddpf43f3p2l4k3l03%26oauth_nonce%3Dkllo9940pd9333jh"
    "%26oauth_signature_method%3DHMAC-SHA1%26oauth_timestamp%3D1191242096"
    "%26oauth_token%3Dnnch734d00sl2jdk%26oauth_version%3D1.0%26size%3Doriginal"
)


def photos_params(**overrides) -> OAuth1Params:
    values = {
        "consumer_key": "dpf43f3p2l4k3l03",
        "consumer_secret": "kd94hf93k423kf44",
        "token_key": "nnch734d00sl2jdk",
        "token_secret": "pfkkdhi9sl3r4s00",
        "signature_method": OAuth1SignatureMethod.HMAC_SHA1,
        "timestamp": "1191242096",
        "nonce": "kllo9940pd9333jh",
    }
    values.update(overrides)
    return OAuth1Params(**values)


def parse_header(header: str) -> dict[str, str]:
    assert header.startswith("OAuth ")
    params = {}
    for part in header[len("OAuth "):].split(", "):
        key, value = part.split("=", 1)
        params[unquote(key)] = unquote(value.strip('"'))
    return params


class TestPercentEncode:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("abc-._~", "abc-._~"),
            ("a b", "a%20b"),
            ("a+b=c&d", "a%2Bb%3Dc%26d"),
            ("/path", "%2Fpath"),
            ("é", "%C3%A9"),
        ],
    )
    def test_encodes_all_but_unreserved(self, value, expected):
        assert percent_encode(value) == expected


class TestSignatureBaseString:
    def test_matches_reference_example(self):
        # Act
        base_string = signature_base_string(
            "GET",
            PHOTOS_URL,
            [
                ("oauth_consumer_key", "dpf43f3p2l4k3l03"),
                ("oauth_token", "nnch734d00sl2jdk"),
                ("oauth_signature_method", "HMAC-SHA1"),
                ("oauth_timestamp", "1191242096"),
                ("oauth_nonce", "kllo9940pd9333jh"),
                ("oauth_version", "1.0"),
            ],
        )

        # Assert
        assert base_string == PHOTOS_BASE_STRING

    def test_keeps_non_default_port_and_lowercases_host(self):
        # Act
        base_string = signature_base_string("post", "HTTP://Example.COM:8080/a/b", [])

        # Assert
        assert base_string == "POST&http%3A%2F%2Fexample.com%3A8080%2Fa%2Fb&"

    def test_drops_default_port(self):
        # Act
        base_string = signature_base_string("get", "https://example.com:443/r", [])

        # Assert
        assert base_string == "GET&https%3A%2F%2Fexample.com%2Fr&"


class TestOAuth1Agent:
    async def test_hmac_sha1_header_matches_reference(self):
        # Arrange
        agent = OAuth1Agent(photos_params())

        # Act
        header = await agent.get_header(AuthContext(url=PHOTOS_URL, method="get"))

        # Assert
        assert header == (
            'OAuth oauth_consumer_key="dpf43f3p2l4k3l03", '
            'oauth_nonce="kllo9940pd9333jh", '
            'oauth_signature="tR3%2BTy81lMeYAr%2FFid0kMTYa%2FWM%3D", '
            'oauth_signature_method="HMAC-SHA1", '
            'oauth_timestamp="1191242096", '
            'oauth_token="nnch734d00sl2jdk", '
            'oauth_version="1.0"'
        )

    async def test_hmac_sha256_signature(self):
        # Arrange
        agent = OAuth1Agent(photos_params(signature_method="HMAC-SHA256"))
        base_string = PHOTOS_BASE_STRING.replace("HMAC-SHA1", "HMAC-SHA256")
        expected = base64.b64encode(
            hmac.new(
                b"kd94hf93k423kf44&pfkkdhi9sl3r4s00",
                base_string.encode("utf-8"),
                hashlib.sha256,
            ).digest()
        ).decode("ascii")

        # Act
        header = await agent.get_header(AuthContext(url=PHOTOS_URL, method="get"))

        # Assert
        params = parse_header(header)
        assert params["oauth_signature_method"] == "HMAC-SHA256"
        assert params["oauth_signature"] == expected

    async def test_plaintext_signature_is_signing_key(self):
        # Arrange
        agent = OAuth1Agent(photos_params(signature_method="PLAINTEXT"))

        # Act
        header = await agent.get_header(AuthContext(url=PHOTOS_URL, method="get"))

        # Assert
        assert 'oauth_signature="kd94hf93k423kf44%26pfkkdhi9sl3r4s00"' in header

    async def test_plaintext_without_token_secret(self):
        # Arrange
        agent = OAuth1Agent(
            photos_params(signature_method="PLAINTEXT", token_key=None, token_secret=None)
        )

        # Act
        params = parse_header(
            await agent.get_header(AuthContext(url=PHOTOS_URL, method="get"))
        )

        # Assert
        assert params["oauth_signature"] == "kd94hf93k423kf44&"
        assert "oauth_token" not in params

    async def test_realm_comes_first(self):
        # Arrange
        agent = OAuth1Agent(photos_params(realm="Photos"))

        # Act
        header = await agent.get_header(AuthContext(url=PHOTOS_URL, method="get"))

        # Assert
        assert header.startswith('OAuth realm="Photos", oauth_consumer_key=')

    async def test_optional_params_are_signed(self):
        # Arrange
        agent = OAuth1Agent(
            photos_params(callback="https://app.example.com/cb", verifier="v123", version=None)
        )

        # Act
        params = parse_header(
            await agent.get_header(AuthContext(url=PHOTOS_URL, method="get"))
        )

        # Assert
        assert params["oauth_callback"] == "https://app.example.com/cb"
        assert params["oauth_verifier"] == "v123"
        assert "oauth_version" not in params

    async def test_generates_nonce_and_timestamp(self):
        # Arrange
        agent = OAuth1Agent(photos_params(nonce=None, timestamp=None))
        context = AuthContext(url=PHOTOS_URL, method="get")

        # Act
        first = parse_header(await agent.get_header(context))
        second = parse_header(await agent.get_header(context))

        # Assert
        assert first["oauth_nonce"] != second["oauth_nonce"]
        assert first["oauth_timestamp"].isdigit()

    async def test_unknown_signature_method(self):
        # Arrange
        agent = OAuth1Agent(photos_params(signature_method="MD5"))

        # Act / Assert
        with pytest.raises(SignatureMethodError, match="MD5"):
            await agent.get_header(AuthContext(url=PHOTOS_URL, method="get"))

    async def test_requires_request_context(self):
        with pytest.raises(OAuth1Error):
            await OAuth1Agent(photos_params()).get_header()

    def test_invalidate_is_noop(self):
        # Arrange
        params = photos_params()
        agent = OAuth1Agent(params)

        # Act
        agent.invalidate()

        # Assert
        assert agent.params.token_key == "nnch734d00sl2jdk"


class TestOAuth1BodyHandling:
    async def test_body_hash_for_text_body(self):
        # Arrange
        agent = OAuth1Agent(photos_params(include_body_hash=True))

        # Act
        params = parse_header(
            await agent.get_header(
                AuthContext(url="http://www.example.com/resource", method="put", body="Hello World!")
            )
        )

        # Assert
        assert params["oauth_body_hash"] == "Lve95gjOVATpfV8EL5X4nxwjKHE="

    async def test_body_hash_for_empty_body(self):
        # Arrange
        agent = OAuth1Agent(photos_params(include_body_hash=True))

        # Act
        params = parse_header(
            await agent.get_header(AuthContext(url="http://www.example.com/r", method="get"))
        )

        # Assert
        assert params["oauth_body_hash"] == base64.b64encode(
            hashlib.sha1(b"").digest()
        ).decode("ascii")

    async def test_no_body_hash_by_default(self):
        # Arrange
        agent = OAuth1Agent(photos_params())

        # Act
        params = parse_header(
            await agent.get_header(
                AuthContext(url="http://www.example.com/r", method="put", body="Hello World!")
            )
        )

        # Assert
        assert "oauth_body_hash" not in params

    async def test_form_fields_are_signed_instead_of_hashed(self):
        # Arrange
        agent = OAuth1Agent(photos_params(include_body_hash=True))
        body = FormData.from_pairs({"status": "hello world", "lang": "en"})
        url = "http://api.example.com/statuses"

        # Act
        params = parse_header(
            await agent.get_header(AuthContext(url=url, method="post", body=body))
        )

        # Assert
        assert "oauth_body_hash" not in params
        signature = params.pop("oauth_signature")
        base_string = signature_base_string("post", url, [*params.items(), *body])
        expected = base64.b64encode(
            hmac.new(
                b"kd94hf93k423kf44&pfkkdhi9sl3r4s00",
                base_string.encode("utf-8"),
                hashlib.sha1,
            ).digest()
        ).decode("ascii")
        assert signature == expected


class TestOAuth1RsaSha1:
    def setup_method(self):
        self.private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        self.pem = self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("utf-8")

    async def test_signature_verifies_with_public_key(self):
        # Arrange
        agent = OAuth1Agent(
            photos_params(signature_method="RSA-SHA1", private_key=self.pem, token_secret=None)
        )

        # Act
        params = parse_header(
            await agent.get_header(AuthContext(url=PHOTOS_URL, method="get"))
        )

        # Assert
        signature = base64.b64decode(params.pop("oauth_signature"))
        base_string = signature_base_string("get", PHOTOS_URL, params.items())
        # Raises InvalidSignature on mismatch
        self.private_key.public_key().verify(
            signature, base_string.encode("utf-8"), padding.PKCS1v15(), hashes.SHA1()
        )

    async def test_requires_private_key(self):
        # Arrange
        agent = OAuth1Agent(photos_params(signature_method="RSA-SHA1"))

        # Act / Assert
        with pytest.raises(OAuth1Error, match="private key"):
            await agent.get_header(AuthContext(url=PHOTOS_URL, method="get"))

    async def test_rejects_invalid_private_key(self):
        # Arrange
        agent = OAuth1Agent(photos_params(signature_method="RSA-SHA1", private_key="not a key"))

        # Act / Assert
        with pytest.raises(OAuth1Error, match="Invalid RSA private key"):
            await agent.get_header(AuthContext(url=PHOTOS_URL, method="get"))
