import pytest

from foodroulette import create_app, db as _db
from foodroulette.models import Coupon, Restaurant


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'test.db'}",
    })
    yield app
    with app.app_context():
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    with app.app_context():
        yield _db


@pytest.fixture
def restaurant(db):
    r = Restaurant(
        name="【草屯總店】傳奇車輪燒",
        address="南投縣草屯鎮中正路609號",
        operating_hours='{"monday": "10:00-22:00"}',
    )
    db.session.add(r)
    db.session.commit()
    return r


@pytest.fixture
def coupons(db, restaurant):
    regular = Coupon(restaurant_id=restaurant.id, title="9折優惠券", description="內用外帶都享全單 9 折優惠！")
    reward = Coupon(restaurant_id=restaurant.id, title="簽到禮", is_check_in_reward=True)
    db.session.add_all([regular, reward])
    db.session.commit()
    return regular, reward


@pytest.fixture
def login_body():
    return {
        "phone": "0912345678",
        "deviceId": "test-device-id-123",
        "deviceInfo": {
            "userAgent": "Mozilla/5.0",
            "screenResolution": "1920x1080",
            "timezone": "Asia/Taipei",
        },
    }
