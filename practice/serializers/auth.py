from rest_framework import serializers

EMAIL_REQUIRED = "L'email est requis"
PASSWORD_REQUIRED = 'Le mot de passe est requis'
PASSWORD_TOO_SHORT = 'Le mot de passe doit contenir au moins 8 caractères'


def password_field(**kwargs):
    return serializers.CharField(trim_whitespace=False, write_only=True, error_messages={
        'required': PASSWORD_REQUIRED, 'blank': PASSWORD_REQUIRED, 'null': PASSWORD_REQUIRED,
    }, **kwargs)


def check_password_length(v):
    if len(v) < 8:
        raise serializers.ValidationError(PASSWORD_TOO_SHORT)
    return v


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField(error_messages={
        'required': EMAIL_REQUIRED, 'blank': EMAIL_REQUIRED, 'null': EMAIL_REQUIRED,
        'invalid': "Format d'email invalide",
    })
    password = password_field()

    def validate_email(self, v):
        return v.strip().lower()

    def validate_password(self, v):
        return check_password_length(v)


class RegisterSerializer(LoginSerializer):
    first_name = serializers.CharField(max_length=100, error_messages={
        'required': 'Le prénom est requis', 'blank': 'Le prénom est requis',
        'max_length': 'Le prénom ne peut pas dépasser 100 caractères'})
    last_name = serializers.CharField(max_length=100, error_messages={
        'required': 'Le nom est requis', 'blank': 'Le nom est requis',
        'max_length': 'Le nom ne peut pas dépasser 100 caractères'})
    practice_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    specialty = serializers.CharField(max_length=100, required=False, allow_blank=True)


class ChangePasswordSerializer(serializers.Serializer):
    currentPassword = password_field()
    newPassword = password_field()

    def validate_newPassword(self, v):
        return check_password_length(v)
