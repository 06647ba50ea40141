from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated

from accounts.permissions import IsCaregiver, IsFamily, IsPlatformAdmin
from .serializers import (
    CancelSerializer,
    CandidateSerializer,
    CareServiceCreateSerializer,
    CareServiceSerializer,
    CareServiceUpdateSerializer,
    ChatMessageCreateSerializer,
    ChatMessageSerializer,
    RespondSerializer,
    ReviewCreateSerializer,
    ReviewSerializer,
    SelectCaregiverSerializer,
)

# Import from services layer
from services import chat, payments, reviews
from services.service_management import (
    CaregiverNotFoundError,
    ConcurrentUpdateError,
    FamilyNotFoundError,
    NotificationNotFoundError,
    NotServiceOwnerError,
    ServiceManagementError,
    ServiceNotFoundError,
    cancel_service,
    create_service,
    delete_service,
    finish_service,
    get_service_for_user,
    list_candidates,
    list_family_services,
    respond_to_service,
    select_caregiver,
    start_service,
    update_service,
)

NOT_FOUND_ERRORS = (
    ServiceNotFoundError,
    NotificationNotFoundError,
    CaregiverNotFoundError,
    FamilyNotFoundError,
    NotServiceOwnerError,
)


def error_response(exc: ServiceManagementError) -> Response:
    """Translate a service-layer error into an HTTP response."""
    if isinstance(exc, NOT_FOUND_ERRORS):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ConcurrentUpdateError):
        code = status.HTTP_409_CONFLICT
    else:
        # InvalidServiceStateError, ServiceValidationError, PaymentError
        code = status.HTTP_400_BAD_REQUEST

    return Response(
        {
            'success': False,
            'error': type(exc).__name__,
            'message': str(exc),
        },
        status=code
    )


def _serialize(service, request):
    return CareServiceSerializer(service, context={'request': request}).data


# ==================== Family Service APIs ====================

@api_view(['GET', 'POST'])
@permission_classes([IsFamily])
def service_list_create(request):
    """
    GET: the family's services, newest first
    POST: create a care request; nearby caregivers are notified in the background
    """
    if request.method == 'GET':
        services_qs = list_family_services(request.user)
        return Response(CareServiceSerializer(services_qs, many=True, context={'request': request}).data)

    serializer = CareServiceCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        result = create_service(request.user, **serializer.validated_data)
    except ServiceManagementError as e:
        return error_response(e)

    return Response({
        **_serialize(result.service, request),
        'message': result.message,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def service_detail(request, service_id):
    """
    GET: visible to the family, the assigned caregiver and offered caregivers
    PATCH / DELETE: family only, while the service is pending
    """
    try:
        if request.method == 'GET':
            service = get_service_for_user(request.user, service_id)
            return Response(_serialize(service, request))

        if not IsFamily().has_permission(request, None):
            return Response({'error': IsFamily.message}, status=status.HTTP_403_FORBIDDEN)

        if request.method == 'PATCH':
            serializer = CareServiceUpdateSerializer(data=request.data, partial=True)
            serializer.is_valid(raise_exception=True)
            result = update_service(request.user, service_id, **serializer.validated_data)
            return Response(_serialize(result.service, request))

        result = delete_service(request.user, service_id)
        return Response({'success': True, 'message': result.message, **(result.extra or {})})
    except ServiceManagementError as e:
        return error_response(e)


@api_view(['GET'])
@permission_classes([IsFamily])
def service_candidates(request, service_id):
    """Caregivers who were offered the service, interested ones first"""
    try:
        candidates = list_candidates(request.user, service_id)
    except ServiceManagementError as e:
        return error_response(e)
    return Response(CandidateSerializer(candidates, many=True).data)


@api_view(['POST'])
@permission_classes([IsFamily])
def select_service_caregiver(request, service_id):
    """Family picks one of the interested caregivers; returns the payment checkout"""
    serializer = SelectCaregiverSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        result = select_caregiver(request.user, service_id, serializer.validated_data['caregiver_id'])
    except ServiceManagementError as e:
        return error_response(e)

    return Response({
        'success': True,
        'service': _serialize(result.service, request),
        'checkout': result.extra.get('checkout'),
        'message': result.message,
    })


@api_view(['POST'])
@permission_classes([IsFamily])
def cancel_care_service(request, service_id):
    """Cancel a service that has not finished yet"""
    serializer = CancelSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        result = cancel_service(request.user, service_id, serializer.validated_data.get('reason', ''))
    except ServiceManagementError as e:
        return error_response(e)

    return Response({
        'success': True,
        'message': result.message,
        'service_id': result.service.id,
        'was_assigned': result.extra['was_assigned'],
        'cancelled_at': result.service.cancelled_at,
    })


@api_view(['POST'])
@permission_classes([IsFamily])
def review_service(request, service_id):
    serializer = ReviewCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        review = reviews.create_review(request.user, service_id, **serializer.validated_data)
    except ServiceManagementError as e:
        return error_response(e)

    return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)


# ==================== Caregiver Service APIs ====================

@api_view(['POST'])
@permission_classes([IsCaregiver])
def respond(request, service_id):
    """Caregiver answers an offer: {"interested": true|false}"""
    serializer = RespondSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        result = respond_to_service(request.user, service_id, serializer.validated_data['interested'])
    except ServiceManagementError as e:
        return error_response(e)

    return Response({
        'success': True,
        'status': result.extra['status'],
        'service_status': result.service.status,
        'message': result.message,
    })


@api_view(['POST'])
@permission_classes([IsCaregiver])
def start(request, service_id):
    try:
        result = start_service(request.user, service_id)
    except ServiceManagementError as e:
        return error_response(e)
    return Response({'success': True, 'service': _serialize(result.service, request), 'message': result.message})


@api_view(['POST'])
@permission_classes([IsCaregiver])
def finish(request, service_id):
    try:
        result = finish_service(request.user, service_id)
    except ServiceManagementError as e:
        return error_response(e)
    return Response({'success': True, 'service': _serialize(result.service, request), 'message': result.message})


# ==================== Chat APIs ====================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def chat_messages(request, service_id):
    """
    GET: the conversation between the family and the assigned caregiver
    POST: send a message to the other party
    """
    try:
        if request.method == 'GET':
            conversation = chat.get_messages(request.user, service_id)
            last = conversation['last_message']
            return Response({
                'service_id': conversation['service_id'],
                'messages': ChatMessageSerializer(conversation['messages'], many=True).data,
                'last_message': ChatMessageSerializer(last).data if last else None,
                'unread': conversation['unread'],
            })

        serializer = ChatMessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        message = chat.add_message(request.user, service_id, serializer.validated_data['content'])
    except ServiceManagementError as e:
        return error_response(e)

    return Response(ChatMessageSerializer(message).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def chat_mark_read(request, service_id):
    try:
        updated = chat.mark_as_read(request.user, service_id)
    except ServiceManagementError as e:
        return error_response(e)
    return Response({'success': True, 'marked_read': updated})


# ==================== Payment APIs ====================

@api_view(['POST'])
@permission_classes([IsFamily])
def checkout(request, service_id):
    """(Re)create the payment checkout for an accepted service"""
    try:
        data = payments.create_checkout(request.user, service_id)
    except ServiceManagementError as e:
        return error_response(e)
    return Response(data)


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def payment_webhook(request):
    """Gateway notifications; always 200 so the gateway does not retry forever"""
    return Response(payments.handle_payment_webhook(request.data))


@api_view(['POST'])
@permission_classes([IsFamily])
def confirm(request, service_id):
    """Fallback for when the webhook did not arrive after the checkout redirect"""
    try:
        return Response(payments.confirm_payment(request.user, service_id))
    except ServiceManagementError as e:
        return error_response(e)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def payment_status(request, service_id):
    try:
        return Response(payments.get_payment_status(request.user, service_id))
    except ServiceManagementError as e:
        return error_response(e)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def payment_history(request):
    services_qs = payments.list_payment_history(request.user)
    return Response(CareServiceSerializer(services_qs, many=True, context={'request': request}).data)


# ==================== Admin APIs ====================

@api_view(['POST'])
@permission_classes([IsPlatformAdmin])
def release(request, service_id):
    """Release the held payment to the caregiver of a completed service"""
    try:
        return Response(payments.release_payment(service_id))
    except ServiceManagementError as e:
        return error_response(e)


@api_view(['GET'])
@permission_classes([IsPlatformAdmin])
def admin_stats(request):
    return Response(reviews.get_stats())


@api_view(['GET'])
@permission_classes([IsPlatformAdmin])
def admin_active_services(request):
    services_qs = reviews.list_active_services()
    return Response(CareServiceSerializer(services_qs, many=True, context={'request': request}).data)
