import pytest
from apps.accounts.models import User, initials_for


class TestInitials:

    @pytest.mark.parametrize('name,expected', [
        ('Dana Levi', 'D.L.'),
        ('maya', 'M.'),
        ('  Eitan   ben  Friedman ', 'E.B.F.'),
        ('', ''),
    ])
    def test_initials_for(self, name, expected):
        assert initials_for(name) == expected


@pytest.mark.django_db
class TestUser:

    def test_create_user(self):
        user = User.objects.create_user(email='Buyer@Example.COM', password='TestPass123!')

        assert user.email == 'Buyer@example.com'
        assert user.check_password('TestPass123!')
        assert user.is_supplier is False
        assert user.is_staff is False

    def test_email_required(self):
        with pytest.raises(ValueError):
            User.objects.create_user(email='', password='TestPass123!')

    def test_create_superuser(self):
        user = User.objects.create_superuser(email='admin@example.com', password='TestPass123!')

        assert user.is_staff
        assert user.is_superuser

    def test_display_name_falls_back_to_email(self):
        user = User.objects.create_user(email='noa.m@example.com', password='TestPass123!')

        assert user.get_display_name() == 'noa.m'
        assert user.get_initials() == 'N.'

    def test_initials_from_display_name(self):
        user = User.objects.create_user(
            email='supplier@example.com',
            password='TestPass123!',
            display_name='Cool Appliances',
            is_supplier=True,
        )

        assert user.get_initials() == 'C.A.'
        assert str(user) == 'supplier@example.com'
