"""Flask CLI command tests."""

from drinkquick.models import Drink, User


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "init"])
    second = runner.invoke(args=["system", "init"])

    assert "PASS Created administrator" in first.output
    assert "already exists" in second.output
    admin = db_session.query(User).filter_by(username="admin").one()
    assert admin.role == "Administrator"


def test_users_create_and_set_role(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "users", "create",
        "--username", "barkeep",
        "--email", "barkeep@example.com",
        "--password", "Password123!",
        "--role", "Manager",
    ])
    assert "PASS Created user: barkeep" in result.output

    result = runner.invoke(args=["users", "set-role", "barkeep", "Administrator"])
    assert "PASS barkeep is now Administrator" in result.output

    listing = runner.invoke(args=["users", "list"])
    assert "barkeep" in listing.output


def test_users_create_rejects_weak_password(app, db_session):
    result = app.test_cli_runner().invoke(args=[
        "users", "create",
        "--username", "weakling",
        "--email", "weakling@example.com",
        "--password", "weak",
    ])
    assert result.output.startswith("FAIL")
    assert db_session.query(User).filter_by(username="weakling").first() is None


def test_seed_default_drinks(app, db_session, staff):
    runner = app.test_cli_runner()

    runner.invoke(args=["drinks", "seed-defaults", "--username", staff.username])
    result = runner.invoke(args=["drinks", "seed-defaults", "--username", staff.username])

    assert "PASS Seeded 0 drinks" in result.output
    prices = {d.category: d.price for d in db_session.query(Drink).filter_by(owner_id=staff.id)}
    assert prices == {"Beer": 800, "Wine": 3000, "Cocktail": 3500, "Soft Drink": 700, "Other": 1000}
