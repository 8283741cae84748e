"""URL configuration for login, profile and user management."""

from django.urls import path

from . import views

app_name = "accounts"

urlpatterns = [
    path("login/", views.login_view, name="login"),
    path("logout/", views.logout_view, name="logout"),
    # User profile
    path("profile/", views.profile_view, name="profile"),
    # Admin user management
    path("users/", views.user_list, name="users"),
    path("users/add/", views.user_add, name="user_add"),
    path("users/<int:pk>/admin/", views.user_toggle_admin, name="user_toggle_admin"),
    path("users/<int:pk>/department/", views.user_department, name="user_department"),
    path("users/<int:pk>/disable/", views.user_disable, name="user_disable"),
    path("users/<int:pk>/delete/", views.user_delete, name="user_delete"),
]
