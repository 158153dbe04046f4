from geoduel import db
from geoduel.models import Country, Match, User


COUNTRIES = [
    ('France', 'Paris', 'fr'),
    ('Germany', 'Berlin', 'de'),
    ('Japan', 'Tokyo', 'jp'),
    ('Brazil', 'Brasília', 'br'),
    ('Canada', 'Ottawa', 'ca'),
    ('Kenya', 'Nairobi', 'ke'),
    ('Australia', 'Canberra', 'au'),
    ('India', 'New Delhi', 'in'),
    ('Mexico', 'Mexico City', 'mx'),
    ('Norway', 'Oslo', 'no'),
    ('Egypt', 'Cairo', 'eg'),
    ('Argentina', 'Buenos Aires', 'ar'),
    ('Vietnam', 'Hanoi', 'vn'),
    ('Peru', 'Lima', 'pe'),
]


def flag_url(iso_code):
    return f"https://flagcdn.com/w320/{iso_code}.png"


def seed_demo_data():
    """Insert countries, two users and an active flags match between them."""
    for name, capital, iso in COUNTRIES:
        db.session.add(Country(name=name, capital=capital, flag_url=flag_url(iso)))

    users = [User(username=u) for u in ('testuser1', 'testuser2', 'testuser3')]
    db.session.add_all(users)
    db.session.flush()

    match = Match(
        challenger_id=users[0].id,
        opponent_id=users[1].id,
        game_type='flags',
        status='active',
    )
    db.session.add(match)
    db.session.commit()
    return match
