import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from api.services.firebase_service import ReviewStoreService
from common.github_app import AppCredentialSigner, GitHubAppClient, GitHubAppService
from tests.fakes import FakeClock, FakeFirestore, FakeGitHubAppAPI


@pytest.fixture(scope="session")
def rsa_keys() -> tuple[str, str]:
    """(private PEM, public PEM) for signing test assertions."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def github_api() -> FakeGitHubAppAPI:
    return FakeGitHubAppAPI(installations={"octo-org": 4242})


@pytest.fixture
def github_app(rsa_keys, github_api, clock) -> GitHubAppService:
    signer = AppCredentialSigner("12345", rsa_keys[0])
    app_client = GitHubAppClient(signer, transport=github_api.transport)
    return GitHubAppService(signer, app_client=app_client, clock=clock)


@pytest.fixture
def firestore() -> FakeFirestore:
    return FakeFirestore()


@pytest.fixture
def store(firestore) -> ReviewStoreService:
    return ReviewStoreService(db=firestore)


@pytest.fixture
def enabled_repo(firestore) -> str:
    """Register octo-org/widgets for automatic review under one user."""
    firestore.collection("users").document("user-1").set(
        {
            "repositories": ["octo-org/widgets"],
            "settings": {"autoReview": True},
        }
    )
    return "octo-org/widgets"
