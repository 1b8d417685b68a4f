from services.preferences import Preferences, accepts, is_mutual, widened_age_range


def _prefs(user_id=1, gender="Male", age=25, home_city="Carlsbad", cities=("Carlsbad",),
           desired_genders=("Male",), lo=18, hi=99):
    return Preferences(
        user_id=user_id,
        gender=gender,
        age=age,
        home_city=home_city,
        cities=frozenset(cities),
        desired_genders=frozenset(desired_genders),
        desired_age_min=lo,
        desired_age_max=hi,
    )


def test_mutual_when_both_sides_fit():
    a = _prefs(1, home_city="Carlsbad", cities=("Carlsbad", "Oceanside"), lo=21, hi=30)
    b = _prefs(2, home_city="Oceanside", cities=("Oceanside", "Carlsbad"), lo=20, hi=32)
    assert is_mutual(a, b)
    assert is_mutual(b, a)


def test_one_sided_gender_preference_is_not_mutual():
    a = _prefs(1, desired_genders=("Male",))
    b = _prefs(2, desired_genders=("Female",))
    assert accepts(a, b)
    assert not accepts(b, a)
    assert not is_mutual(a, b)


def test_age_bounds_are_inclusive():
    seeker = _prefs(1, lo=21, hi=30)
    assert accepts(seeker, _prefs(2, age=21))
    assert accepts(seeker, _prefs(2, age=30))
    assert not accepts(seeker, _prefs(2, age=31))
    assert not accepts(seeker, _prefs(2, age=20))


def test_location_uses_other_home_city_against_seeker_cities():
    seeker = _prefs(1, cities=("Encinitas",))
    assert not accepts(seeker, _prefs(2, home_city="Carlsbad", cities=("Encinitas",)))
    assert accepts(seeker, _prefs(2, home_city="Encinitas"))


def test_widened_age_range_is_clamped():
    assert widened_age_range(25, 35) == (20, 40)
    assert widened_age_range(20, 97) == (18, 99)
    assert widened_age_range(18, 99) == (18, 99)
