"""Example manifests for testing and documentation.

The frontend/backend objects follow the classic "nginx frontend serving a
ConfigMap-backed index.html, json-server backend" walkthrough.
"""

# What `kubectl create deployment frontend --image nginx --port 80
# --dry-run=client -o yaml` prints
GENERATED_FRONTEND_DEPLOYMENT = """apiVersion: apps/v1
kind: Deployment
metadata:
  creationTimestamp: null
  labels:
    app: frontend
  name: frontend
spec:
  replicas: 1
  selector:
    matchLabels:
      app: frontend
  strategy: {}
  template:
    metadata:
      creationTimestamp: null
      labels:
        app: frontend
    spec:
      containers:
      - image: nginx
        name: nginx
        ports:
        - containerPort: 80
        resources: {}
status: {}
"""

# What `kubectl create configmap frontend-data --from-file index.html
# --dry-run=client -o yaml` prints
GENERATED_FRONTEND_CONFIGMAP = """apiVersion: v1
data:
  index.html: |-
    <!DOCTYPE html>
    <html lang="en">
    <body>
      <div id="app"></div>
    </body>
    </html>
kind: ConfigMap
metadata:
  creationTimestamp: null
  name: frontend-data
"""

# What `kubectl expose -f - --name frontend --port 80 --type ClusterIP
# --dry-run=client -o yaml` prints for the frontend deployment
GENERATED_FRONTEND_SERVICE = """apiVersion: v1
kind: Service
metadata:
  creationTimestamp: null
  labels:
    app: frontend
  name: frontend
spec:
  ports:
  - port: 80
    protocol: TCP
    targetPort: 80
  selector:
    app: frontend
  type: ClusterIP
status:
  loadBalancer: {}
"""

# Hand-authored fragment adding the ConfigMap volume and its mount
FRONTEND_VOLUMES_FRAGMENT = """kind: Deployment
metadata:
  name: frontend
spec:
  template:
    spec:
      containers:
      - name: nginx
        volumeMounts:
        - name: frontend-data
          mountPath: /usr/share/nginx/html/
      volumes:
      - name: frontend-data
        configMap:
          name: frontend-data
"""

# Finished frontend deployment as kept in version control
FRONTEND_DEPLOYMENT = """apiVersion: apps/v1
kind: Deployment
metadata:
  labels:
    app: frontend
  name: frontend
spec:
  progressDeadlineSeconds: 600
  replicas: 1
  revisionHistoryLimit: 10
  selector:
    matchLabels:
      app: frontend
  strategy:
    rollingUpdate:
      maxSurge: 25%
      maxUnavailable: 25%
    type: RollingUpdate
  template:
    metadata:
      labels:
        app: frontend
    spec:
      containers:
      - image: nginx
        imagePullPolicy: Always
        name: nginx
        ports:
        - containerPort: 80
          protocol: TCP
        resources:
          limits:
            cpu: 100m
            memory: 256Mi
        terminationMessagePath: /dev/termination-log
        terminationMessagePolicy: File
        volumeMounts:
        - name: frontend-data
          mountPath: /usr/share/nginx/html/
      volumes:
      - name: frontend-data
        configMap:
          name: frontend-data
      dnsPolicy: ClusterFirst
      restartPolicy: Always
      schedulerName: default-scheduler
      securityContext: {}
      terminationGracePeriodSeconds: 30
"""

# Output of a dry-run apply: a List carrying server-populated fields
DRY_RUN_LIST = """apiVersion: v1
items:
- apiVersion: apps/v1
  kind: Deployment
  metadata:
    annotations:
      kubectl.kubernetes.io/last-applied-configuration: |
        {"apiVersion":"apps/v1","kind":"Deployment","metadata":{"annotations":{},"labels":{"app":"backend"},"name":"backend","namespace":"default"}}
    creationTimestamp: null
    labels:
      app: backend
    name: backend
    namespace: default
  spec:
    replicas: 1
    selector:
      matchLabels:
        app: backend
    template:
      metadata:
        creationTimestamp: null
        labels:
          app: backend
      spec:
        containers:
        - image: bluebrown/json-server
          name: json-server
          ports:
          - containerPort: 3000
            protocol: TCP
          resources:
            limits:
              cpu: 100m
              memory: 256Mi
  status: {}
- apiVersion: v1
  kind: Service
  metadata:
    annotations:
      kubectl.kubernetes.io/last-applied-configuration: |
        {"apiVersion":"v1","kind":"Service","metadata":{"annotations":{},"labels":{"app":"backend"},"name":"backend","namespace":"default"}}
    creationTimestamp: null
    labels:
      app: backend
    name: backend
    namespace: default
  spec:
    ports:
    - port: 80
      protocol: TCP
      targetPort: 3000
    selector:
      app: backend
  status:
    loadBalancer: {}
- apiVersion: v1
  data:
    index.html: |-
      <!DOCTYPE html>
      <html lang="en"></html>
  kind: ConfigMap
  metadata:
    creationTimestamp: null
    name: frontend-data
    namespace: default
kind: List
metadata: {}
"""

# Recipe reproducing the frontend objects
FRONTEND_RECIPE = """resources:
  - output: objects/frontend.cm.yaml
    generate:
      kind: configmap
      name: frontend-data
      fromFile: index.html
  - output: objects/frontend.deploy.yaml
    generate: {kind: deployment, name: frontend, image: nginx, port: 80}
    set:
      - resources.limits=cpu=100m,memory=256Mi
    merge:
      - fragments/frontend-volumes.yaml
  - output: objects/frontend.svc.yaml
    generate: {kind: expose, name: frontend, port: 80}
    exposeFrom: objects/frontend.deploy.yaml
"""
