from rest_framework import permissions
from rest_framework.generics import CreateAPIView, ListCreateAPIView, RetrieveUpdateAPIView
from .serializers import PayoutMethodSerializer, SellerSerializer, UserSerializer
from .models import PayoutMethod
from django.contrib.auth import get_user_model

User = get_user_model()

class RegisterUserView(CreateAPIView):
    queryset = User.objects.all()
    permission_classes = [permissions.AllowAny]
    serializer_class = UserSerializer
class RegisterSellerView(CreateAPIView):
    queryset = User.objects.filter(role='SELLER')
    permission_classes = [permissions.AllowAny]
    serializer_class = SellerSerializer
class CurrentUserView(RetrieveUpdateAPIView):
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = UserSerializer

    def get_object(self):
        return self.request.user
class PayoutMethodListCreateView(ListCreateAPIView):
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = PayoutMethodSerializer

    def get_queryset(self):
        return PayoutMethod.objects.filter(seller=self.request.user).order_by("created_at")
