"""
Login form.
"""
from django import forms


class LoginForm(forms.Form):

    username = forms.CharField(
        max_length=150,
        widget=forms.TextInput(attrs={
            'placeholder': 'Username',
            'autocomplete': 'username',
            'autofocus': True,
        }),
    )
    password = forms.CharField(
        strip=False,
        widget=forms.PasswordInput(attrs={
            'placeholder': 'Password',
            'autocomplete': 'current-password',
        }),
    )
    next = forms.CharField(required=False, widget=forms.HiddenInput)

    def clean_username(self):
        return self.cleaned_data['username'].strip()
