from django.contrib.auth.password_validation import validate_password

from rest_framework import serializers

from .models import Player, Team, User


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ("id", "email", "username", "user_type", "phone_number", "created_at")
        read_only_fields = ("id", "created_at")


class PlayerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Player
        fields = ("id", "team", "player_name", "jersey_number", "is_active", "created_at")
        read_only_fields = ("id", "team", "created_at")

    def validate_jersey_number(self, value):
        if value is not None and value > 999:
            raise serializers.ValidationError("Jersey number must be between 0 and 999.")
        return value


class TeamSerializer(serializers.ModelSerializer):
    players = PlayerSerializer(many=True, read_only=True)

    class Meta:
        model = Team
        fields = (
            "id",
            "team_name",
            "team_omission",
            "contact_person",
            "contact_email",
            "contact_phone",
            "is_active",
            "players",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("id", "created_at", "updated_at")

    def validate_team_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Team name is required.")
        return value


class TeamRegistrationSerializer(serializers.ModelSerializer):
    """Creates a team login together with its master team record"""

    password = serializers.CharField(write_only=True, required=True, validators=[validate_password])
    password2 = serializers.CharField(write_only=True, required=True)
    team_name = serializers.CharField(required=True)
    team_omission = serializers.CharField(required=False, allow_blank=True)
    contact_person = serializers.CharField(required=False, allow_blank=True)

    class Meta:
        model = User
        fields = (
            "email",
            "username",
            "password",
            "password2",
            "phone_number",
            "team_name",
            "team_omission",
            "contact_person",
        )

    def validate(self, attrs):
        if attrs["password"] != attrs["password2"]:
            raise serializers.ValidationError({"password": "Password fields didn't match."})
        return attrs

    def create(self, validated_data):
        validated_data.pop("password2")
        team_name = validated_data.pop("team_name")
        team_omission = validated_data.pop("team_omission", "")
        contact_person = validated_data.pop("contact_person", "")

        user = User.objects.create_user(
            email=validated_data["email"],
            username=validated_data["username"],
            password=validated_data["password"],
            user_type="team",
            phone_number=validated_data.get("phone_number", ""),
        )

        Team.objects.create(
            user=user,
            team_name=team_name,
            team_omission=team_omission,
            contact_person=contact_person,
            contact_email=user.email,
            contact_phone=user.phone_number or "",
        )

        return user


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField(required=True)
    password = serializers.CharField(required=True, write_only=True)
