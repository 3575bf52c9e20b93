"""Gate URLs: login form and logout."""
from django.urls import path

from gate import views

urlpatterns = [
    path('login/', views.login_view, name='login'),
    path('logout/', views.logout_view, name='logout'),
]
