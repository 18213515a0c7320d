# marketplace/admin.py
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import User, Donation, FoodItem, ActorStats, StatsCredit, DisasterReport, Notification


@admin.register(User)
class MarketplaceUserAdmin(UserAdmin):
    list_display = ('username', 'display_name', 'user_type', 'email', 'is_active')
    list_filter = ('user_type', 'is_active', 'is_staff')
    fieldsets = UserAdmin.fieldsets + (
        ('Marketplace', {'fields': ('user_type', 'display_name', 'contact_number', 'address', 'latitude', 'longitude')}),
    )
    add_fieldsets = UserAdmin.add_fieldsets + (
        ('Marketplace', {'fields': ('user_type', 'display_name')}),
    )


class FoodItemInline(admin.TabularInline):
    model = FoodItem
    extra = 0


@admin.register(Donation)
class DonationAdmin(admin.ModelAdmin):
    list_display = ('id', 'restaurant', 'ngo', 'status', 'total_kg', 'declared_value', 'created_at')
    list_filter = ('status',)
    search_fields = ('restaurant__username', 'ngo__username', 'food_items__name')
    # Status only changes through the lifecycle service.
    readonly_fields = ('status', 'verification_code', 'verification_attempts', 'total_kg',
                       'accepted_at', 'rejected_at', 'completed_at')
    inlines = [FoodItemInline]


@admin.register(ActorStats)
class ActorStatsAdmin(admin.ModelAdmin):
    list_display = ('actor', 'total_donations', 'total_kg', 'total_value', 'total_points', 'updated_at')
    ordering = ('-total_points',)
    readonly_fields = ('total_donations', 'total_kg', 'total_value', 'total_points')


@admin.register(StatsCredit)
class StatsCreditAdmin(admin.ModelAdmin):
    list_display = ('actor', 'donation', 'donations', 'kg', 'value', 'points', 'created_at')


@admin.register(DisasterReport)
class DisasterReportAdmin(admin.ModelAdmin):
    list_display = ('title', 'ngo', 'urgency', 'status', 'created_at')
    list_filter = ('urgency', 'status')


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('title', 'recipient', 'kind', 'is_read', 'created_at')
    list_filter = ('kind', 'is_read')
