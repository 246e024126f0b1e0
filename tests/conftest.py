from datetime import date

import pytest
from flask_jwt_extended import create_access_token

from bms_backend import create_app
from bms_backend.config import TestingConfig
from bms_backend.extensions import db
from bms_backend.models import Building, Lease, Organization, Tenant, Unit, User
from bms_backend.security.permissions import (
    ACCOUNTANT,
    BUILDING_MANAGER,
    ORG_ADMIN,
    SECURITY,
    SUPER_ADMIN,
    TECHNICIAN,
    TENANT,
)

PASSWORD = "correct-horse-battery"


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def org(app):
    org = Organization(name="Bole Heights", code="BOLE", status="active")
    db.session.add(org)
    db.session.commit()
    return org


@pytest.fixture
def other_org(app):
    org = Organization(name="Piassa Towers", code="PIASSA", status="active")
    db.session.add(org)
    db.session.commit()
    return org


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(roles, organization=None, tenant_id=None, status="active", email=None):
        counter["n"] += 1
        user = User(
            organization_id=organization.id if organization is not None else None,
            name=f"User {counter['n']}",
            phone=f"+2519110000{counter['n']:02d}",
            email=email,
            roles=list(roles),
            status=status,
            tenant_id=tenant_id,
        )
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


def auth_headers(user):
    token = create_access_token(identity=str(user.id))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def super_admin(make_user):
    return make_user([SUPER_ADMIN], email="root@bms.test")


@pytest.fixture
def admin(make_user, org):
    return make_user([ORG_ADMIN], org, email="admin@bole.test")


@pytest.fixture
def manager(make_user, org):
    return make_user([BUILDING_MANAGER], org)


@pytest.fixture
def accountant(make_user, org):
    return make_user([ACCOUNTANT], org)


@pytest.fixture
def guard(make_user, org):
    return make_user([SECURITY], org)


@pytest.fixture
def technician(make_user, org):
    return make_user([TECHNICIAN], org)


@pytest.fixture
def building(org):
    building = Building(organization_id=org.id, name="Tower A", building_type="residential", status="active")
    db.session.add(building)
    db.session.commit()
    return building


@pytest.fixture
def unit(org, building):
    unit = Unit(
        organization_id=org.id,
        building_id=building.id,
        unit_number="101",
        unit_type="apartment",
        status="available",
        rent_amount=12000,
    )
    db.session.add(unit)
    db.session.commit()
    return unit


@pytest.fixture
def tenant(org):
    tenant = Tenant(
        organization_id=org.id,
        first_name="Abebe",
        last_name="Kebede",
        primary_phone="+251922000001",
        email="abebe@example.com",
        status="active",
    )
    db.session.add(tenant)
    db.session.commit()
    return tenant


@pytest.fixture
def lease(org, tenant, unit):
    lease = Lease(
        organization_id=org.id,
        tenant_id=tenant.id,
        unit_id=unit.id,
        start_date=date(2024, 1, 1),
        end_date=None,
        rent_amount=12000,
        billing_cycle="monthly",
        due_day=5,
        additional_charges=[{"name": "Service fee", "amount": 500, "frequency": "monthly"}],
        status="active",
    )
    lease.unit = unit
    lease.activate()
    db.session.add(lease)
    db.session.commit()
    return lease


@pytest.fixture
def tenant_user(make_user, org, tenant):
    return make_user([TENANT], org, tenant_id=tenant.id)
