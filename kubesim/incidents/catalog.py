"""Shipped incident catalog: definitions, severity rewards and cascade rules."""

from __future__ import annotations

from kubesim.incidents.models import (
    CascadeRule,
    IncidentCategory,
    IncidentDefinition,
    InvestigationStep,
    ResolutionAction,
)
from kubesim.models.resources import Kind

SEVERITY_XP: dict[int, int] = {1: 25, 2: 50, 3: 100, 4: 200, 5: 350}


def _step(command: str, hint: str) -> InvestigationStep:
    return InvestigationStep(command, hint)


def _action(action: str, label: str, difficulty: int) -> ResolutionAction:
    return ResolutionAction(action, label, difficulty)


INCIDENT_DEFINITIONS: tuple[IncidentDefinition, ...] = (
    IncidentDefinition(
        id="crash-loop-backoff",
        name="CrashLoopBackOff",
        category=IncidentCategory.POD,
        severity=3,
        description="A container is repeatedly crashing and Kubernetes is backing off restart attempts.",
        visual_effect="pulse-red",
        affected_kinds=(Kind.POD, Kind.DEPLOYMENT),
        investigation_steps=(
            _step("kubectl logs <pod> --previous", "Check previous container logs for crash reason"),
            _step("kubectl describe pod <pod>", "Look at Events section for restart count and reasons"),
            _step("kubectl get events --field-selector involvedObject.name=<pod>", "Check cluster events for this Pod"),
        ),
        resolution_actions=(
            _action("fix-image", "Fix container image tag", 1),
            _action("fix-command", "Correct entrypoint command", 2),
            _action("fix-resources", "Increase memory limit", 1),
        ),
        kubectl_commands=("kubectl logs", "kubectl describe pod", "kubectl delete pod"),
    ),
    IncidentDefinition(
        id="image-pull-backoff",
        name="ImagePullBackOff",
        category=IncidentCategory.POD,
        severity=2,
        description="Kubernetes cannot pull the container image from the registry.",
        visual_effect="pulse-yellow",
        affected_kinds=(Kind.POD, Kind.DEPLOYMENT),
        investigation_steps=(
            _step("kubectl describe pod <pod>", "Check the image name and pull errors in Events"),
            _step('kubectl get pod <pod> -o jsonpath="{.spec.containers[*].image}"', "Verify the image reference"),
        ),
        resolution_actions=(
            _action("fix-image-name", "Correct image name/tag", 1),
            _action("add-pull-secret", "Add imagePullSecret", 2),
        ),
        kubectl_commands=("kubectl describe pod", "kubectl edit deployment"),
    ),
    IncidentDefinition(
        id="oom-killed",
        name="OOMKilled",
        category=IncidentCategory.POD,
        severity=3,
        description="Container exceeded its memory limit and was terminated by the OOM killer.",
        visual_effect="flash-red",
        affected_kinds=(Kind.POD, Kind.DEPLOYMENT),
        investigation_steps=(
            _step("kubectl describe pod <pod>", "Look for OOMKilled in Last State"),
            _step("kubectl top pod <pod>", "Check current memory usage"),
            _step('kubectl get pod <pod> -o jsonpath="{.spec.containers[*].resources}"', "Review resource limits"),
        ),
        resolution_actions=(
            _action("increase-memory", "Increase memory limit", 1),
            _action("fix-memory-leak", "Fix application memory leak", 3),
            _action("add-hpa", "Add HPA to scale horizontally", 2),
        ),
        kubectl_commands=("kubectl describe pod", "kubectl top pod", "kubectl edit deployment"),
    ),
    IncidentDefinition(
        id="pod-eviction",
        name="PodEviction",
        category=IncidentCategory.POD,
        severity=2,
        description="Pod was evicted due to node resource pressure.",
        visual_effect="fade-out",
        affected_kinds=(Kind.POD, Kind.NODE),
        investigation_steps=(
            _step("kubectl describe pod <pod>", "Check eviction reason in Status"),
            _step("kubectl describe node <node>", "Check node conditions for resource pressure"),
            _step("kubectl top node", "Review node resource usage"),
        ),
        resolution_actions=(
            _action("add-node", "Add a new node", 1),
            _action("set-priority", "Set PriorityClass", 2),
            _action("reduce-requests", "Optimize resource requests", 2),
        ),
        kubectl_commands=("kubectl describe pod", "kubectl describe node", "kubectl top node"),
    ),
    IncidentDefinition(
        id="readiness-probe-failure",
        name="ReadinessProbeFailure",
        category=IncidentCategory.POD,
        severity=2,
        description="Readiness probe is failing. Pod removed from Service endpoints.",
        visual_effect="pulse-yellow",
        affected_kinds=(Kind.POD, Kind.SERVICE),
        investigation_steps=(
            _step("kubectl describe pod <pod>", "Check readiness probe configuration and failure messages"),
            _step("kubectl logs <pod>", "Look for application startup issues"),
            _step("kubectl get endpoints <service>", "Check if Pod is in Service endpoints"),
        ),
        resolution_actions=(
            _action("fix-probe-path", "Correct probe endpoint path", 1),
            _action("fix-probe-port", "Fix probe port number", 1),
            _action("increase-timeout", "Increase initialDelaySeconds", 1),
        ),
        kubectl_commands=("kubectl describe pod", "kubectl get endpoints"),
        auto_resolve_seconds=60.0,
    ),
    IncidentDefinition(
        id="pod-stuck-terminating",
        name="PodStuckTerminating",
        category=IncidentCategory.POD,
        severity=2,
        description="Pod is stuck in Terminating state and not being cleaned up.",
        visual_effect="blink-gray",
        affected_kinds=(Kind.POD,),
        investigation_steps=(
            _step("kubectl describe pod <pod>", "Check for finalizers preventing deletion"),
            _step('kubectl get pod <pod> -o jsonpath="{.metadata.finalizers}"', "List finalizers"),
        ),
        resolution_actions=(
            _action("force-delete", "Force delete the Pod", 1),
            _action("remove-finalizer", "Remove blocking finalizer", 2),
        ),
        kubectl_commands=("kubectl delete pod --force --grace-period=0", "kubectl patch pod"),
        auto_resolve_seconds=120.0,
    ),
    IncidentDefinition(
        id="node-not-ready",
        name="NodeNotReady",
        category=IncidentCategory.NODE,
        severity=5,
        description="Node has stopped responding and is marked NotReady. All Pods at risk.",
        visual_effect="shake-fade",
        affected_kinds=(Kind.NODE, Kind.POD),
        investigation_steps=(
            _step("kubectl describe node <node>", "Check conditions: MemoryPressure, DiskPressure, PIDPressure"),
            _step("kubectl get pods --field-selector spec.nodeName=<node>", "List all Pods on this node"),
            _step("kubectl get events --field-selector involvedObject.name=<node>", "Check node events"),
        ),
        resolution_actions=(
            _action("restart-kubelet", "Restart kubelet service", 2),
            _action("drain-node", "Drain and reschedule Pods", 2),
            _action("replace-node", "Replace the node entirely", 3),
        ),
        kubectl_commands=("kubectl describe node", "kubectl drain", "kubectl cordon"),
    ),
    IncidentDefinition(
        id="node-disk-pressure",
        name="NodeDiskPressure",
        category=IncidentCategory.NODE,
        severity=4,
        description="Node is running low on disk space. Pod evictions imminent.",
        visual_effect="pulse-orange",
        affected_kinds=(Kind.NODE,),
        investigation_steps=(
            _step("kubectl describe node <node>", "Check DiskPressure condition"),
            _step("kubectl get pods --field-selector spec.nodeName=<node> --sort-by=.status.startTime", "Find large or old Pods"),
        ),
        resolution_actions=(
            _action("cleanup-images", "Clean unused container images", 1),
            _action("delete-old-pods", "Remove completed Job Pods", 1),
            _action("expand-disk", "Expand node disk", 3),
        ),
        kubectl_commands=("kubectl describe node", "kubectl delete pod"),
    ),
    IncidentDefinition(
        id="node-memory-pressure",
        name="NodeMemoryPressure",
        category=IncidentCategory.NODE,
        severity=4,
        description="Node memory is critically low. Pods will be evicted by priority.",
        visual_effect="pulse-orange",
        affected_kinds=(Kind.NODE, Kind.POD),
        investigation_steps=(
            _step("kubectl top node <node>", "Check node memory usage percentage"),
            _step("kubectl top pods --sort-by=memory", "Find highest memory consumers"),
        ),
        resolution_actions=(
            _action("evict-low-priority", "Evict low-priority Pods", 1),
            _action("add-node", "Add a new node to the cluster", 2),
            _action("set-limits", "Set memory limits on all Pods", 2),
        ),
        kubectl_commands=("kubectl top node", "kubectl top pods", "kubectl cordon"),
    ),
    IncidentDefinition(
        id="node-pid-pressure",
        name="NodePIDPressure",
        category=IncidentCategory.NODE,
        severity=3,
        description="Node is running out of process IDs. Fork bomb suspected.",
        visual_effect="pulse-orange",
        affected_kinds=(Kind.NODE,),
        investigation_steps=(
            _step("kubectl describe node <node>", "Check PIDPressure condition"),
            _step("kubectl get pods --field-selector spec.nodeName=<node>", "List Pods on the affected node"),
        ),
        resolution_actions=(
            _action("kill-runaway", "Delete runaway Pod", 1),
            _action("set-pid-limit", "Set PID limits on containers", 2),
        ),
        kubectl_commands=("kubectl describe node", "kubectl delete pod"),
    ),
    IncidentDefinition(
        id="service-endpoint-missing",
        name="ServiceEndpointMissing",
        category=IncidentCategory.NETWORK,
        severity=3,
        description="Service has no endpoints. No Pods match the selector.",
        visual_effect="pulse-yellow",
        affected_kinds=(Kind.SERVICE, Kind.DEPLOYMENT),
        investigation_steps=(
            _step("kubectl get endpoints <service>", "Check if endpoints list is empty"),
            _step("kubectl describe service <service>", "Verify selector matches Pod labels"),
            _step("kubectl get pods --show-labels", "Check Pod labels match Service selector"),
        ),
        resolution_actions=(
            _action("fix-selector", "Fix Service selector labels", 1),
            _action("fix-pod-labels", "Fix Pod labels", 1),
            _action("fix-readiness", "Fix readiness probe", 2),
        ),
        kubectl_commands=("kubectl get endpoints", "kubectl describe service", "kubectl get pods --show-labels"),
    ),
    IncidentDefinition(
        id="dns-resolution-failure",
        name="DNSResolutionFailure",
        category=IncidentCategory.NETWORK,
        severity=4,
        description="Cluster DNS resolution is failing. Services cannot be discovered by name.",
        visual_effect="screen-static",
        affected_kinds=(Kind.SERVICE, Kind.POD),
        investigation_steps=(
            _step("kubectl get pods -n kube-system -l k8s-app=kube-dns", "Check CoreDNS Pod status"),
            _step("kubectl logs -n kube-system -l k8s-app=kube-dns", "Check CoreDNS logs for errors"),
            _step("kubectl get configmap coredns -n kube-system -o yaml", "Verify CoreDNS configuration"),
        ),
        resolution_actions=(
            _action("restart-coredns", "Restart CoreDNS Pods", 1),
            _action("fix-coredns-config", "Fix CoreDNS ConfigMap", 2),
            _action("fix-network-policy", "Allow DNS traffic in NetworkPolicy", 2),
        ),
        kubectl_commands=("kubectl get pods -n kube-system", "kubectl logs", "kubectl rollout restart deployment coredns -n kube-system"),
    ),
    IncidentDefinition(
        id="network-policy-blocking",
        name="NetworkPolicyBlocking",
        category=IncidentCategory.NETWORK,
        severity=3,
        description="NetworkPolicy is blocking legitimate traffic between services.",
        visual_effect="connection-red",
        affected_kinds=(Kind.NETWORK_POLICY, Kind.SERVICE, Kind.POD),
        investigation_steps=(
            _step("kubectl get networkpolicies", "List all NetworkPolicies"),
            _step("kubectl describe networkpolicy <policy>", "Check ingress/egress rules"),
            _step("kubectl get pods --show-labels -n <namespace>", "Verify Pod labels match policy selectors"),
        ),
        resolution_actions=(
            _action("add-allow-rule", "Add allow rule for legitimate traffic", 2),
            _action("fix-selectors", "Fix namespace/pod selectors", 2),
            _action("add-dns-egress", "Allow DNS egress", 1),
        ),
        kubectl_commands=("kubectl get networkpolicies", "kubectl describe networkpolicy", "kubectl apply -f"),
    ),
    IncidentDefinition(
        id="ingress-misconfigured",
        name="IngressMisconfigured",
        category=IncidentCategory.NETWORK,
        severity=3,
        description="Ingress rules are not routing traffic correctly to backend Services.",
        visual_effect="pulse-yellow",
        affected_kinds=(Kind.INGRESS, Kind.SERVICE),
        investigation_steps=(
            _step("kubectl describe ingress <ingress>", "Check rules and backend configuration"),
            _step("kubectl get svc", "Verify backend Services exist and have endpoints"),
        ),
        resolution_actions=(
            _action("fix-backend", "Fix backend Service name/port", 1),
            _action("fix-path", "Correct path routing rules", 1),
            _action("add-tls", "Configure TLS termination", 2),
        ),
        kubectl_commands=("kubectl describe ingress", "kubectl get svc", "kubectl edit ingress"),
    ),
    IncidentDefinition(
        id="unauthorized-access",
        name="UnauthorizedAccess",
        category=IncidentCategory.NETWORK,
        severity=5,
        description="Suspicious access pattern detected. Potential security breach.",
        visual_effect="alert-red-border",
        affected_kinds=(Kind.POD, Kind.SERVICE_ACCOUNT, Kind.NAMESPACE),
        investigation_steps=(
            _step("kubectl auth can-i --list --as=system:serviceaccount:<ns>:<sa>", "Check ServiceAccount permissions"),
            _step("kubectl get rolebindings,clusterrolebindings --all-namespaces", "Audit role bindings"),
            _step("kubectl logs <pod>", "Check Pod logs for suspicious activity"),
        ),
        resolution_actions=(
            _action("restrict-rbac", "Restrict RBAC permissions", 2),
            _action("add-network-policy", "Add restrictive NetworkPolicy", 2),
            _action("rotate-credentials", "Rotate ServiceAccount tokens", 3),
        ),
        kubectl_commands=("kubectl auth can-i", "kubectl get rolebindings", "kubectl delete rolebinding"),
    ),
    IncidentDefinition(
        id="pvc-pending",
        name="PVCPending",
        category=IncidentCategory.STORAGE,
        severity=3,
        description="PersistentVolumeClaim is stuck in Pending state. No matching PV found.",
        visual_effect="pulse-yellow",
        affected_kinds=(Kind.PERSISTENT_VOLUME_CLAIM, Kind.PERSISTENT_VOLUME),
        investigation_steps=(
            _step("kubectl describe pvc <pvc>", "Check Events for binding errors"),
            _step("kubectl get pv", "List available PersistentVolumes"),
            _step("kubectl get storageclass", "Verify StorageClass exists"),
        ),
        resolution_actions=(
            _action("create-pv", "Create a matching PersistentVolume", 1),
            _action("fix-storage-class", "Fix StorageClass reference", 2),
            _action("resize-pvc", "Reduce PVC size to match available PV", 1),
        ),
        kubectl_commands=("kubectl describe pvc", "kubectl get pv", "kubectl get storageclass"),
    ),
    IncidentDefinition(
        id="volume-mount-failure",
        name="VolumeMountFailure",
        category=IncidentCategory.STORAGE,
        severity=3,
        description="Pod cannot mount the requested volume. Container start blocked.",
        visual_effect="pulse-red",
        affected_kinds=(Kind.POD, Kind.PERSISTENT_VOLUME_CLAIM),
        investigation_steps=(
            _step("kubectl describe pod <pod>", "Look for volume mount errors in Events"),
            _step("kubectl get pvc", "Check PVC status is Bound"),
        ),
        resolution_actions=(
            _action("fix-mount-path", "Correct volume mount path", 1),
            _action("fix-pvc-ref", "Fix PVC reference name", 1),
            _action("fix-access-mode", "Change PV access mode (RWO/RWX)", 2),
        ),
        kubectl_commands=("kubectl describe pod", "kubectl get pvc", "kubectl edit deployment"),
    ),
    IncidentDefinition(
        id="volume-capacity-full",
        name="VolumeCapacityFull",
        category=IncidentCategory.STORAGE,
        severity=4,
        description="PersistentVolume is at capacity. Writes are failing.",
        visual_effect="pulse-orange",
        affected_kinds=(Kind.PERSISTENT_VOLUME, Kind.PERSISTENT_VOLUME_CLAIM, Kind.POD),
        investigation_steps=(
            _step("kubectl exec <pod> -- df -h", "Check disk usage inside the container"),
            _step("kubectl describe pv <pv>", "Check PV capacity"),
        ),
        resolution_actions=(
            _action("expand-pv", "Expand PersistentVolume", 2),
            _action("cleanup-data", "Clean up old data in volume", 1),
            _action("add-monitoring", "Add volume usage alerts", 2),
        ),
        kubectl_commands=("kubectl exec", "kubectl describe pv", "kubectl edit pvc"),
    ),
    IncidentDefinition(
        id="etcd-latency",
        name="EtcdLatency",
        category=IncidentCategory.CONTROL_PLANE,
        severity=5,
        description="etcd is experiencing high latency. API server responses are slow.",
        visual_effect="slow-motion",
        affected_kinds=(Kind.NODE,),
        investigation_steps=(
            _step("kubectl -n kube-system get pods -l component=etcd", "Check etcd Pod health status"),
            _step("kubectl logs -n kube-system etcd-master", "Check etcd logs for slow operations"),
        ),
        resolution_actions=(
            _action("defrag-etcd", "Defragment etcd database", 3),
            _action("compact-etcd", "Compact etcd revisions", 3),
            _action("add-etcd-member", "Scale etcd cluster", 3),
        ),
        kubectl_commands=("kubectl get pods -n kube-system -l component=etcd", "kubectl logs -n kube-system"),
    ),
    IncidentDefinition(
        id="api-server-overloaded",
        name="APIServerOverloaded",
        category=IncidentCategory.CONTROL_PLANE,
        severity=5,
        description="API server is overloaded. Requests are being throttled.",
        visual_effect="screen-lag",
        affected_kinds=(Kind.NODE,),
        investigation_steps=(
            _step("kubectl get --raw /metrics | grep apiserver_request", "Check API server request rates"),
            _step("kubectl get events --all-namespaces --sort-by=.lastTimestamp", "Look for excessive events"),
        ),
        resolution_actions=(
            _action("reduce-watches", "Reduce watch connections", 2),
            _action("rate-limit", "Apply API priority and fairness", 3),
            _action("scale-api-server", "Scale API server replicas", 3),
        ),
        kubectl_commands=("kubectl get --raw /metrics", "kubectl get events"),
    ),
    IncidentDefinition(
        id="scheduler-failure",
        name="SchedulerFailure",
        category=IncidentCategory.CONTROL_PLANE,
        severity=4,
        description="Pods are stuck in Pending state. Scheduler cannot find suitable nodes.",
        visual_effect="pulse-yellow",
        affected_kinds=(Kind.POD, Kind.NODE),
        investigation_steps=(
            _step("kubectl describe pod <pod>", "Check Events for scheduling failures"),
            _step("kubectl get nodes", "Verify node availability and capacity"),
            _step('kubectl describe nodes | grep -A5 "Allocated resources"', "Check node resource allocation"),
        ),
        resolution_actions=(
            _action("add-node", "Add more nodes", 1),
            _action("fix-affinity", "Relax node affinity rules", 2),
            _action("remove-taint", "Remove node taints", 1),
        ),
        kubectl_commands=("kubectl describe pod", "kubectl get nodes", "kubectl taint nodes"),
    ),
    IncidentDefinition(
        id="webhook-timeout",
        name="WebhookTimeout",
        category=IncidentCategory.CONTROL_PLANE,
        severity=4,
        description="Admission webhook is timing out, blocking resource creation.",
        visual_effect="pulse-orange",
        affected_kinds=(Kind.POD, Kind.DEPLOYMENT),
        investigation_steps=(
            _step("kubectl get validatingwebhookconfigurations", "List validating webhooks"),
            _step("kubectl get mutatingwebhookconfigurations", "List mutating webhooks"),
            _step("kubectl logs -n <ns> <webhook-pod>", "Check webhook Pod logs"),
        ),
        resolution_actions=(
            _action("restart-webhook", "Restart webhook Pod", 1),
            _action("add-failure-policy", "Set failurePolicy: Ignore", 2),
            _action("remove-webhook", "Delete the webhook configuration", 2),
        ),
        kubectl_commands=("kubectl get validatingwebhookconfigurations", "kubectl delete validatingwebhookconfiguration"),
        auto_resolve_seconds=90.0,
    ),
    IncidentDefinition(
        id="deployment-stuck-rollout",
        name="DeploymentStuckRollout",
        category=IncidentCategory.WORKLOAD,
        severity=3,
        description="Deployment rollout is stuck. New ReplicaSet is not scaling up.",
        visual_effect="pulse-yellow",
        affected_kinds=(Kind.DEPLOYMENT, Kind.REPLICA_SET),
        investigation_steps=(
            _step("kubectl rollout status deployment/<deployment>", "Check rollout progress"),
            _step("kubectl describe deployment <deployment>", "Look for conditions and events"),
            _step("kubectl get replicasets -l app=<deployment>", "Check old and new ReplicaSets"),
        ),
        resolution_actions=(
            _action("rollback", "Rollback to previous revision", 1),
            _action("fix-image", "Fix the container image", 1),
            _action("increase-surge", "Increase maxSurge for faster rollout", 2),
        ),
        kubectl_commands=("kubectl rollout status", "kubectl rollout undo", "kubectl rollout history"),
    ),
    IncidentDefinition(
        id="hpa-scaling-failure",
        name="HPAScalingFailure",
        category=IncidentCategory.WORKLOAD,
        severity=2,
        description="HPA cannot scale the target. Metrics unavailable or max replicas reached.",
        visual_effect="pulse-yellow",
        affected_kinds=(Kind.HORIZONTAL_POD_AUTOSCALER, Kind.DEPLOYMENT),
        investigation_steps=(
            _step("kubectl describe hpa <hpa>", "Check HPA conditions and events"),
            _step("kubectl top pods", "Verify metrics are available"),
            _step("kubectl get hpa", "Check current vs desired replica count"),
        ),
        resolution_actions=(
            _action("increase-max", "Increase maxReplicas", 1),
            _action("fix-metrics", "Fix metrics-server", 2),
            _action("set-resource-requests", "Set resource requests on containers", 1),
        ),
        kubectl_commands=("kubectl describe hpa", "kubectl top pods", "kubectl edit hpa"),
    ),
    IncidentDefinition(
        id="job-deadline-exceeded",
        name="JobDeadlineExceeded",
        category=IncidentCategory.WORKLOAD,
        severity=2,
        description="Job exceeded its activeDeadlineSeconds and was terminated.",
        visual_effect="fade-out",
        affected_kinds=(Kind.JOB, Kind.POD),
        investigation_steps=(
            _step("kubectl describe job <job>", "Check completion status and deadline"),
            _step("kubectl logs job/<job>", "Check Job Pod logs for slow execution"),
        ),
        resolution_actions=(
            _action("increase-deadline", "Increase activeDeadlineSeconds", 1),
            _action("fix-parallelism", "Increase Job parallelism", 1),
            _action("retry-job", "Delete and recreate the Job", 1),
        ),
        kubectl_commands=("kubectl describe job", "kubectl logs", "kubectl delete job"),
    ),
    IncidentDefinition(
        id="liveness-probe-failure",
        name="LivenessProbeFailure",
        category=IncidentCategory.POD,
        severity=3,
        description="Liveness probe is failing. Container will be restarted by kubelet.",
        visual_effect="pulse-red",
        affected_kinds=(Kind.POD, Kind.DEPLOYMENT),
        investigation_steps=(
            _step("kubectl describe pod <pod>", "Check liveness probe configuration and failure count"),
            _step("kubectl logs <pod> --previous", "Check logs from the previous container instance"),
            _step("kubectl get events --field-selector involvedObject.name=<pod>", "Look for Unhealthy events with type Liveness"),
        ),
        resolution_actions=(
            _action("fix-probe-endpoint", "Fix the health check endpoint", 1),
            _action("increase-timeout", "Increase timeoutSeconds and failureThreshold", 1),
            _action("fix-app-startup", "Add startupProbe for slow-starting containers", 2),
        ),
        kubectl_commands=("kubectl describe pod", "kubectl logs --previous", "kubectl edit deployment"),
    ),
    IncidentDefinition(
        id="certificate-expiry",
        name="CertificateExpiry",
        category=IncidentCategory.CONTROL_PLANE,
        severity=5,
        description="TLS certificate is expired or expiring soon. HTTPS traffic will fail.",
        visual_effect="alert-red-border",
        affected_kinds=(Kind.SECRET, Kind.INGRESS),
        investigation_steps=(
            _step('kubectl get secret <tls-secret> -o jsonpath="{.data.tls\\.crt}" | base64 -d | openssl x509 -noout -dates', "Check certificate expiration date"),
            _step("kubectl describe ingress <ingress>", "Verify TLS secret reference in Ingress"),
            _step("kubectl get secrets --field-selector type=kubernetes.io/tls", "List all TLS secrets in the cluster"),
        ),
        resolution_actions=(
            _action("renew-cert", "Renew the TLS certificate", 2),
            _action("update-secret", "Update the Secret with new cert", 1),
            _action("add-cert-manager", "Install cert-manager for auto-renewal", 3),
        ),
        kubectl_commands=("kubectl get secret", "kubectl describe ingress", "kubectl create secret tls"),
    ),
    IncidentDefinition(
        id="cronjob-missed-schedule",
        name="CronJobMissedSchedule",
        category=IncidentCategory.WORKLOAD,
        severity=2,
        description="CronJob missed its scheduled execution window.",
        visual_effect="pulse-yellow",
        affected_kinds=(Kind.CRON_JOB, Kind.JOB),
        investigation_steps=(
            _step("kubectl describe cronjob <cronjob>", "Check Last Schedule Time and active Jobs"),
            _step("kubectl get jobs --sort-by=.status.startTime", "List recent Jobs created by this CronJob"),
            _step("kubectl get events --field-selector involvedObject.name=<cronjob>", "Look for MissedSchedule events"),
        ),
        resolution_actions=(
            _action("increase-deadline", "Increase startingDeadlineSeconds", 1),
            _action("fix-concurrency", "Change concurrencyPolicy to Allow", 1),
            _action("manual-trigger", "Create a manual Job from CronJob template", 1),
        ),
        kubectl_commands=("kubectl describe cronjob", "kubectl get jobs", "kubectl create job --from=cronjob/<name>"),
    ),
    IncidentDefinition(
        id="secret-exposed",
        name="SecretExposed",
        category=IncidentCategory.CONTROL_PLANE,
        severity=5,
        description="Sensitive data found in a ConfigMap instead of a Secret.",
        visual_effect="alert-red-border",
        affected_kinds=(Kind.CONFIG_MAP, Kind.SECRET),
        investigation_steps=(
            _step("kubectl get configmaps -o yaml", "Search ConfigMaps for sensitive data"),
            _step("kubectl get secrets", "Verify Secrets are being used for sensitive data"),
        ),
        resolution_actions=(
            _action("migrate-to-secret", "Move data to a Secret", 1),
            _action("rotate-credentials", "Rotate the exposed credentials", 2),
            _action("update-references", "Update all Pod references", 2),
        ),
        kubectl_commands=("kubectl create secret", "kubectl delete configmap", "kubectl edit deployment"),
    ),
)

# Parent and child are definition names.
CASCADE_RULES: tuple[CascadeRule, ...] = (
    CascadeRule("NodeNotReady", "PodEviction", probability=0.8, delay=5.0, severity=2),
    CascadeRule("NodeNotReady", "ServiceEndpointMissing", probability=0.5, delay=8.0, severity=3),
    CascadeRule("OOMKilled", "ReadinessProbeFailure", probability=0.6, delay=3.0, severity=2),
    CascadeRule("DNSResolutionFailure", "ServiceEndpointMissing", probability=0.7, delay=4.0, severity=3),
    CascadeRule("DNSResolutionFailure", "ReadinessProbeFailure", probability=0.4, delay=6.0, severity=2),
    CascadeRule("EtcdLatency", "APIServerOverloaded", probability=0.6, delay=5.0, severity=5),
    CascadeRule("EtcdLatency", "SchedulerFailure", probability=0.4, delay=8.0, severity=4),
    CascadeRule("NodeDiskPressure", "PodEviction", probability=0.7, delay=10.0, severity=2),
    CascadeRule("NodeMemoryPressure", "OOMKilled", probability=0.6, delay=5.0, severity=3),
    CascadeRule("NodeMemoryPressure", "PodEviction", probability=0.5, delay=8.0, severity=2),
)

_BY_KEY: dict[str, IncidentDefinition] = {}
for _definition in INCIDENT_DEFINITIONS:
    _BY_KEY[_definition.id] = _definition
    _BY_KEY[_definition.name] = _definition


def find_definition(key: str) -> IncidentDefinition | None:
    """Look a definition up by id (``oom-killed``) or name (``OOMKilled``)."""
    return _BY_KEY.get(key)


def rules_for(parent_name: str, rules: tuple[CascadeRule, ...] = CASCADE_RULES) -> list[CascadeRule]:
    return [rule for rule in rules if rule.parent == parent_name]
